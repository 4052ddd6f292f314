# Generated manually
import django.db.models.deletion
import tenderhub.tenders.models
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bids', '0001_initial'),
        ('contracts', '0001_initial'),
        ('organizations', '0001_initial'),
        ('tenders', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='SecurityInstrument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference_number', models.CharField(editable=False, max_length=50, unique=True)),
                ('kind', models.CharField(choices=[('bank_guarantee', 'Bank Guarantee'), ('security_deposit', 'Security Deposit'), ('insurance_policy', 'Insurance Policy')], max_length=20)),
                ('purpose', models.CharField(choices=[('emd', 'Earnest Money'), ('performance', 'Performance Security'), ('advance_payment', 'Advance Payment'), ('retention', 'Retention Money'), ('warranty', 'Warranty'), ('other', 'Other')], default='performance', max_length=20)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('submitted', 'Submitted'), ('verified', 'Verified'), ('active', 'Active'), ('claimed', 'Claimed'), ('released', 'Released'), ('refunded', 'Refunded'), ('forfeited', 'Forfeited'), ('expired', 'Expired'), ('cancelled', 'Cancelled')], default='draft', max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=15)),
                ('currency', models.CharField(default=tenderhub.tenders.models.default_currency, max_length=3)),
                ('claimed_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('instrument_number', models.CharField(blank=True, help_text='Guarantee, receipt or policy number', max_length=100)),
                ('issuer_name', models.CharField(blank=True, help_text='Issuing bank or insurer', max_length=255)),
                ('issuer_branch', models.CharField(blank=True, max_length=255)),
                ('issue_date', models.DateField(blank=True, null=True)),
                ('expiry_date', models.DateField(blank=True, null=True)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('verification_remarks', models.TextField(blank=True)),
                ('activated_at', models.DateTimeField(blank=True, null=True)),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('claim_reason', models.TextField(blank=True)),
                ('released_at', models.DateTimeField(blank=True, null=True)),
                ('release_remarks', models.TextField(blank=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('documents', models.JSONField(blank=True, default=list)),
                ('remarks', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('bid', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='security_instruments', to='bids.bid')),
                ('contract', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='security_instruments', to='contracts.contract')),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_security_instruments', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='security_instruments', to='organizations.organization')),
                ('tender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='security_instruments', to='tenders.tender')),
                ('verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verified_security_instruments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'security_instruments',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['status'], name='idx_security_status'), models.Index(fields=['kind', 'status'], name='idx_security_kind_status'), models.Index(fields=['expiry_date'], name='idx_security_expiry')],
            },
        ),
    ]
