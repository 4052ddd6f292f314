# Generated manually
import django.db.models.deletion
import tenderhub.tenders.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('organizations', '0001_initial'),
        ('tenders', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Bid',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference_number', models.CharField(editable=False, max_length=50, unique=True)),
                ('type', models.CharField(choices=[('technical', 'Technical'), ('financial', 'Financial'), ('combined', 'Combined')], default='combined', max_length=20)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('submitted', 'Submitted'), ('under_evaluation', 'Under Evaluation'), ('shortlisted', 'Shortlisted'), ('accepted', 'Accepted'), ('rejected', 'Rejected'), ('withdrawn', 'Withdrawn'), ('disqualified', 'Disqualified')], default='draft', max_length=20)),
                ('quoted_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('currency', models.CharField(default=tenderhub.tenders.models.default_currency, max_length=3)),
                ('delivery_period', models.CharField(blank=True, max_length=255)),
                ('technical_proposal', models.TextField(blank=True)),
                ('commercial_proposal', models.JSONField(blank=True, default=dict)),
                ('technical_score', models.JSONField(blank=True, default=dict)),
                ('financial_score', models.JSONField(blank=True, default=dict)),
                ('overall_score', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('ranking', models.PositiveIntegerField(blank=True, null=True)),
                ('submitted_documents', models.JSONField(blank=True, default=list)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('evaluated_at', models.DateTimeField(blank=True, null=True)),
                ('evaluation_remarks', models.TextField(blank=True)),
                ('deviations', models.JSONField(blank=True, default=list)),
                ('is_emd_paid', models.BooleanField(default=False)),
                ('emd_transaction_id', models.CharField(blank=True, max_length=100)),
                ('emd_paid_at', models.DateTimeField(blank=True, null=True)),
                ('emd_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('notes', models.TextField(blank=True)),
                ('withdrawn_at', models.DateTimeField(blank=True, null=True)),
                ('withdrawal_reason', models.TextField(blank=True)),
                ('disqualified_at', models.DateTimeField(blank=True, null=True)),
                ('disqualification_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('evaluated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='evaluated_bids', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='received_bids', to='organizations.organization')),
                ('tender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bids', to='tenders.tender')),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bids', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'bids',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_bid_status'),
                    models.Index(fields=['tender', 'quoted_amount'], name='idx_bid_tender_amount'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('vendor', 'tender'), name='uniq_bid_vendor_tender'),
                ],
            },
        ),
    ]
