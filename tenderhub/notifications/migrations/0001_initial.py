# Generated manually
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('info', 'Information'), ('tender_published', 'Tender Published'), ('tender_extended', 'Tender Deadline Extended'), ('tender_cancelled', 'Tender Cancelled'), ('bid_submitted', 'Bid Submitted'), ('bid_received', 'Bid Received'), ('bid_withdrawn', 'Bid Withdrawn'), ('bid_shortlisted', 'Bid Shortlisted'), ('bid_disqualified', 'Bid Disqualified'), ('bid_accepted', 'Bid Accepted'), ('bid_rejected', 'Bid Rejected'), ('contract_approved', 'Contract Approved'), ('contract_signed', 'Contract Signed'), ('contract_activated', 'Contract Activated'), ('contract_terminated', 'Contract Terminated'), ('payment_received', 'Payment Received'), ('payment_failed', 'Payment Failed'), ('vendor_approved', 'Vendor Approved'), ('vendor_rejected', 'Vendor Rejected'), ('emd_verified', 'EMD Verified'), ('emd_refunded', 'EMD Refunded'), ('emd_forfeited', 'EMD Forfeited'), ('security_submitted', 'Security Submitted'), ('security_verified', 'Security Verified'), ('security_claimed', 'Security Claimed'), ('security_released', 'Security Released'), ('security_expiring', 'Security Expiring')], default='info', max_length=30)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('urgent', 'Urgent')], default='medium', max_length=10)),
                ('title', models.CharField(max_length=255)),
                ('message', models.TextField()),
                ('data', models.JSONField(blank=True, default=dict)),
                ('link', models.CharField(blank=True, max_length=500)),
                ('is_read', models.BooleanField(default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'notifications',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['recipient', 'is_read'], name='idx_notification_unread'), models.Index(fields=['recipient', '-created_at'], name='idx_notification_recent')],
            },
        ),
    ]
