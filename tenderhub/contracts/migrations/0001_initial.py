# Generated manually
import django.db.models.deletion
import tenderhub.tenders.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bids', '0001_initial'),
        ('organizations', '0001_initial'),
        ('tenders', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Contract',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('contract_number', models.CharField(editable=False, max_length=50, unique=True)),
                ('title', models.CharField(max_length=500)),
                ('description', models.TextField(blank=True)),
                ('type', models.CharField(choices=[('service', 'Service'), ('supply', 'Supply'), ('works', 'Works'), ('consultancy', 'Consultancy'), ('framework', 'Framework'), ('maintenance', 'Maintenance'), ('license', 'License'), ('other', 'Other')], default='supply', max_length=20)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('pending_approval', 'Pending Approval'), ('approved', 'Approved'), ('active', 'Active'), ('suspended', 'Suspended'), ('terminated', 'Terminated'), ('completed', 'Completed'), ('expired', 'Expired'), ('cancelled', 'Cancelled')], default='draft', max_length=20)),
                ('contract_value', models.DecimalField(decimal_places=2, max_digits=15)),
                ('currency', models.CharField(default=tenderhub.tenders.models.default_currency, max_length=3)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('payment_terms', models.CharField(choices=[('advance', 'Advance'), ('on_delivery', 'On Delivery'), ('net_30', 'Net 30'), ('net_60', 'Net 60'), ('net_90', 'Net 90'), ('milestone', 'Milestone Based'), ('custom', 'Custom')], default='net_30', max_length=20)),
                ('payment_terms_details', models.TextField(blank=True)),
                ('milestones', models.JSONField(blank=True, default=list)),
                ('deliverables', models.JSONField(blank=True, default=list)),
                ('terms_and_conditions', models.TextField(blank=True)),
                ('special_conditions', models.TextField(blank=True)),
                ('signatures', models.JSONField(blank=True, default=list)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('approval_remarks', models.TextField(blank=True)),
                ('signed_at', models.DateTimeField(blank=True, null=True)),
                ('activated_at', models.DateTimeField(blank=True, null=True)),
                ('suspended_at', models.DateTimeField(blank=True, null=True)),
                ('suspension_reason', models.TextField(blank=True)),
                ('terminated_at', models.DateTimeField(blank=True, null=True)),
                ('termination_reason', models.TextField(blank=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('is_renewable', models.BooleanField(default=False)),
                ('renewal_notice_period_days', models.PositiveIntegerField(default=30)),
                ('amendments', models.JSONField(blank=True, default=list)),
                ('performance_score', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('performance_metrics', models.JSONField(blank=True, default=list)),
                ('documents', models.JSONField(blank=True, default=list)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approved_contracts', to=settings.AUTH_USER_MODEL)),
                ('bid', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='contracts', to='bids.bid')),
                ('buyer_organization', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='buyer_contracts', to='organizations.organization')),
                ('contract_manager', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='managed_contracts', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_contracts', to=settings.AUTH_USER_MODEL)),
                ('parent_contract', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='renewals', to='contracts.contract')),
                ('tender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='contracts', to='tenders.tender')),
                ('vendor_organization', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='vendor_contracts', to='organizations.organization')),
            ],
            options={
                'db_table': 'contracts',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_contract_status'),
                    models.Index(fields=['end_date'], name='idx_contract_end_date'),
                    models.Index(fields=['vendor_organization', 'status'], name='idx_contract_vendor_status'),
                ],
            },
        ),
    ]
