# Generated manually
import django.db.models.deletion
import tenderhub.tenders.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bids', '0001_initial'),
        ('tenders', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Emd',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference_number', models.CharField(editable=False, max_length=50, unique=True)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=15)),
                ('currency', models.CharField(default=tenderhub.tenders.models.default_currency, max_length=3)),
                ('type', models.CharField(choices=[('bank_guarantee', 'Bank Guarantee'), ('fixed_deposit', 'Fixed Deposit'), ('demand_draft', 'Demand Draft'), ('online_payment', 'Online Payment')], default='online_payment', max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('verified', 'Verified'), ('refunded', 'Refunded'), ('forfeited', 'Forfeited'), ('expired', 'Expired')], default='pending', max_length=20)),
                ('transaction_id', models.CharField(blank=True, max_length=100)),
                ('bank_name', models.CharField(blank=True, max_length=255)),
                ('bank_branch', models.CharField(blank=True, max_length=255)),
                ('ifsc_code', models.CharField(blank=True, max_length=20)),
                ('instrument_number', models.CharField(blank=True, max_length=100)),
                ('instrument_date', models.DateField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('refunded_at', models.DateTimeField(blank=True, null=True)),
                ('refund_transaction_id', models.CharField(blank=True, max_length=100)),
                ('refund_reason', models.TextField(blank=True)),
                ('forfeited_at', models.DateTimeField(blank=True, null=True)),
                ('forfeiture_reason', models.TextField(blank=True)),
                ('valid_upto', models.DateTimeField(blank=True, null=True)),
                ('documents', models.JSONField(blank=True, default=list)),
                ('remarks', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('bid', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='emds', to='bids.bid')),
                ('tender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='emds', to='tenders.tender')),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='emds', to=settings.AUTH_USER_MODEL)),
                ('verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verified_emds', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'emds',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_emd_status'),
                    models.Index(fields=['valid_upto'], name='idx_emd_valid_upto'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('tender', 'vendor'), name='uniq_emd_tender_vendor'),
                ],
            },
        ),
    ]
