from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Platform user. ``role`` drives what a user may do across the apps."""
    ROLE_SUPER_ADMIN = 'super_admin'
    ROLE_ADMIN = 'admin'
    ROLE_MANAGER = 'manager'
    ROLE_VENDOR = 'vendor'
    ROLE_BUYER = 'buyer'
    ROLE_AUDITOR = 'auditor'
    ROLE_USER = 'user'

    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super Admin'),
        (ROLE_ADMIN, 'Admin'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_VENDOR, 'Vendor'),
        (ROLE_BUYER, 'Buyer'),
        (ROLE_AUDITOR, 'Auditor'),
        (ROLE_USER, 'User'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_BUYER)
    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='users'
    )
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['role'], name='idx_user_role'),
        ]


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for every state-changing operation"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('status_change', 'Status Change'),
        ('publish', 'Publish'),
        ('close', 'Close'),
        ('cancel', 'Cancel'),
        ('extend', 'Deadline Extended'),
        ('award', 'Award'),
        ('complete', 'Complete'),
        ('submit', 'Submit'),
        ('withdraw', 'Withdraw'),
        ('shortlist', 'Shortlist'),
        ('evaluate', 'Evaluate'),
        ('disqualify', 'Disqualify'),
        ('verify', 'Verify'),
        ('approve', 'Approve'),
        ('reject', 'Reject'),
        ('suspend', 'Suspend'),
        ('activate', 'Activate'),
        ('blacklist', 'Blacklist'),
        ('unblacklist', 'Removed From Blacklist'),
        ('sign', 'Sign'),
        ('amend', 'Amend'),
        ('renew', 'Renew'),
        ('terminate', 'Terminate'),
        ('payment_process', 'Payment Processed'),
        ('refund', 'Refund'),
        ('mark_paid', 'Marked Paid'),
        ('forfeit', 'Forfeit'),
        ('webhook', 'Webhook Received'),
        ('send', 'Send'),
        ('expire', 'Expire'),
        ('resume', 'Resume'),
        ('cancel_payment', 'Payment Cancelled'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., tender title)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., tender reference, contract number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name', 'object_id'], name='idx_audit_object'),
            models.Index(fields=['object_reference'], name='idx_audit_reference'),
        ]
