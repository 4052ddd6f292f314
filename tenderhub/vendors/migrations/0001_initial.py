# Generated manually
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('organizations', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Vendor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('registration_number', models.CharField(editable=False, max_length=50, unique=True)),
                ('legal_name', models.CharField(max_length=255)),
                ('trade_name', models.CharField(blank=True, max_length=255)),
                ('category', models.CharField(choices=[('manufacturer', 'Manufacturer'), ('distributor', 'Distributor'), ('service_provider', 'Service Provider'), ('contractor', 'Contractor'), ('consultant', 'Consultant'), ('supplier', 'Supplier'), ('other', 'Other')], default='supplier', max_length=30)),
                ('status', models.CharField(choices=[('pending_verification', 'Pending Verification'), ('verified', 'Verified'), ('suspended', 'Suspended'), ('blacklisted', 'Blacklisted'), ('inactive', 'Inactive')], default='pending_verification', max_length=30)),
                ('verification_status', models.CharField(choices=[('not_started', 'Not Started'), ('in_progress', 'In Progress'), ('pending_documents', 'Pending Documents'), ('under_review', 'Under Review'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='not_started', max_length=30)),
                ('tax_id', models.CharField(blank=True, max_length=100)),
                ('primary_contact_name', models.CharField(blank=True, max_length=255)),
                ('primary_contact_email', models.EmailField(blank=True, max_length=254)),
                ('primary_contact_phone', models.CharField(blank=True, max_length=20)),
                ('business_address', models.JSONField(blank=True, default=dict)),
                ('website', models.URLField(blank=True)),
                ('bank_details', models.JSONField(blank=True, default=dict)),
                ('certifications', models.JSONField(blank=True, default=list)),
                ('documents', models.JSONField(blank=True, default=list)),
                ('overall_rating', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=3)),
                ('total_contracts_completed', models.PositiveIntegerField(default=0)),
                ('total_contracts_in_progress', models.PositiveIntegerField(default=0)),
                ('on_time_delivery_rate', models.DecimalField(decimal_places=2, default=Decimal('100.00'), max_digits=5)),
                ('quality_score', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=3)),
                ('compliance_score', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=3)),
                ('total_disputes', models.PositiveIntegerField(default=0)),
                ('resolved_disputes', models.PositiveIntegerField(default=0)),
                ('blacklist_date', models.DateTimeField(blank=True, null=True)),
                ('blacklist_reason', models.TextField(blank=True)),
                ('blacklist_expiry_date', models.DateTimeField(blank=True, null=True)),
                ('blacklist_history', models.JSONField(blank=True, default=list)),
                ('product_categories', models.JSONField(blank=True, default=list)),
                ('service_categories', models.JSONField(blank=True, default=list)),
                ('notes', models.TextField(blank=True)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('verification_remarks', models.TextField(blank=True)),
                ('last_activity_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('account_manager', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='managed_vendors', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='registered_vendors', to=settings.AUTH_USER_MODEL)),
                ('organization', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='vendor_profile', to='organizations.organization')),
                ('verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verified_vendors', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'vendors',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_vendor_status'),
                    models.Index(fields=['category'], name='idx_vendor_category'),
                    models.Index(fields=['verification_status'], name='idx_vendor_verification'),
                    models.Index(fields=['-overall_rating'], name='idx_vendor_rating'),
                ],
            },
        ),
    ]
