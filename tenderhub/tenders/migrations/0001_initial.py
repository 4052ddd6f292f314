# Generated manually
import django.db.models.deletion
import tenderhub.tenders.models
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
            name='Tender',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference_number', models.CharField(max_length=100, unique=True)),
                ('title', models.CharField(max_length=500)),
                ('description', models.TextField()),
                ('type', models.CharField(choices=[('open', 'Open'), ('limited', 'Limited'), ('single', 'Single Source'), ('two_stage', 'Two Stage'), ('expression_of_interest', 'Expression of Interest')], default='open', max_length=30)),
                ('category', models.CharField(choices=[('goods', 'Goods'), ('services', 'Services'), ('works', 'Works'), ('consultancy', 'Consultancy'), ('other', 'Other')], default='goods', max_length=20)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('published', 'Published'), ('evaluation', 'Under Evaluation'), ('awarded', 'Awarded'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='draft', max_length=20)),
                ('estimated_value', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('currency', models.CharField(default=tenderhub.tenders.models.default_currency, max_length=3)),
                ('emd_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('emd_percentage', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('is_emd_required', models.BooleanField(default=True)),
                ('publish_date', models.DateTimeField(blank=True, null=True)),
                ('bid_start_date', models.DateTimeField(blank=True, null=True)),
                ('bid_end_date', models.DateTimeField()),
                ('opening_date', models.DateTimeField(blank=True, null=True)),
                ('clarification_deadline', models.DateTimeField(blank=True, null=True)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('delivery_period', models.CharField(blank=True, max_length=255)),
                ('payment_terms', models.TextField(blank=True)),
                ('eligibility_criteria', models.JSONField(blank=True, default=list)),
                ('technical_requirements', models.JSONField(blank=True, default=dict)),
                ('evaluation_criteria', models.JSONField(blank=True, default=dict)),
                ('required_documents', models.JSONField(blank=True, default=list)),
                ('contact_details', models.JSONField(blank=True, default=dict)),
                ('is_multiple_winners_allowed', models.BooleanField(default=False)),
                ('max_winners', models.PositiveIntegerField(default=1)),
                ('is_public', models.BooleanField(default=True)),
                ('invited_vendors', models.JSONField(blank=True, default=list, help_text='User IDs invited to a non-public tender')),
                ('view_count', models.PositiveIntegerField(default=0)),
                ('bid_count', models.PositiveIntegerField(default=0)),
                ('attachments', models.JSONField(blank=True, default=list)),
                ('amendments', models.JSONField(blank=True, default=list)),
                ('clarifications', models.JSONField(blank=True, default=list)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('cancellation_date', models.DateTimeField(blank=True, null=True)),
                ('awarded_date', models.DateTimeField(blank=True, null=True)),
                ('awarded_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('awarded_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='awarded_tenders', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='tenders', to=settings.AUTH_USER_MODEL)),
                ('favorited_by', models.ManyToManyField(blank=True, related_name='favorite_tenders', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='tenders', to='organizations.organization')),
            ],
            options={
                'db_table': 'tenders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_tender_status'),
                    models.Index(fields=['category'], name='idx_tender_category'),
                    models.Index(fields=['bid_end_date'], name='idx_tender_bid_end'),
                    models.Index(fields=['-created_at'], name='idx_tender_created'),
                ],
            },
        ),
    ]
