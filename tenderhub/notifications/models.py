import os
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone


def retention_days():
    return int(getattr(settings, 'NOTIFICATION_RETENTION_DAYS', os.getenv('NOTIFICATION_RETENTION_DAYS', 30)))


class Notification(models.Model):
    """In-app message for one user about a workflow event"""
    TYPE_INFO = 'info'
    TYPE_TENDER_PUBLISHED = 'tender_published'
    TYPE_TENDER_EXTENDED = 'tender_extended'
    TYPE_TENDER_CANCELLED = 'tender_cancelled'
    TYPE_BID_SUBMITTED = 'bid_submitted'
    TYPE_BID_RECEIVED = 'bid_received'
    TYPE_BID_WITHDRAWN = 'bid_withdrawn'
    TYPE_BID_SHORTLISTED = 'bid_shortlisted'
    TYPE_BID_DISQUALIFIED = 'bid_disqualified'
    TYPE_BID_ACCEPTED = 'bid_accepted'
    TYPE_BID_REJECTED = 'bid_rejected'
    TYPE_CONTRACT_APPROVED = 'contract_approved'
    TYPE_CONTRACT_SIGNED = 'contract_signed'
    TYPE_CONTRACT_ACTIVATED = 'contract_activated'
    TYPE_CONTRACT_TERMINATED = 'contract_terminated'
    TYPE_PAYMENT_RECEIVED = 'payment_received'
    TYPE_PAYMENT_FAILED = 'payment_failed'
    TYPE_VENDOR_APPROVED = 'vendor_approved'
    TYPE_VENDOR_REJECTED = 'vendor_rejected'
    TYPE_EMD_VERIFIED = 'emd_verified'
    TYPE_EMD_REFUNDED = 'emd_refunded'
    TYPE_EMD_FORFEITED = 'emd_forfeited'
    TYPE_SECURITY_SUBMITTED = 'security_submitted'
    TYPE_SECURITY_VERIFIED = 'security_verified'
    TYPE_SECURITY_CLAIMED = 'security_claimed'
    TYPE_SECURITY_RELEASED = 'security_released'
    TYPE_SECURITY_EXPIRING = 'security_expiring'

    TYPE_CHOICES = [
        (TYPE_INFO, 'Information'),
        (TYPE_TENDER_PUBLISHED, 'Tender Published'),
        (TYPE_TENDER_EXTENDED, 'Tender Deadline Extended'),
        (TYPE_TENDER_CANCELLED, 'Tender Cancelled'),
        (TYPE_BID_SUBMITTED, 'Bid Submitted'),
        (TYPE_BID_RECEIVED, 'Bid Received'),
        (TYPE_BID_WITHDRAWN, 'Bid Withdrawn'),
        (TYPE_BID_SHORTLISTED, 'Bid Shortlisted'),
        (TYPE_BID_DISQUALIFIED, 'Bid Disqualified'),
        (TYPE_BID_ACCEPTED, 'Bid Accepted'),
        (TYPE_BID_REJECTED, 'Bid Rejected'),
        (TYPE_CONTRACT_APPROVED, 'Contract Approved'),
        (TYPE_CONTRACT_SIGNED, 'Contract Signed'),
        (TYPE_CONTRACT_ACTIVATED, 'Contract Activated'),
        (TYPE_CONTRACT_TERMINATED, 'Contract Terminated'),
        (TYPE_PAYMENT_RECEIVED, 'Payment Received'),
        (TYPE_PAYMENT_FAILED, 'Payment Failed'),
        (TYPE_VENDOR_APPROVED, 'Vendor Approved'),
        (TYPE_VENDOR_REJECTED, 'Vendor Rejected'),
        (TYPE_EMD_VERIFIED, 'EMD Verified'),
        (TYPE_EMD_REFUNDED, 'EMD Refunded'),
        (TYPE_EMD_FORFEITED, 'EMD Forfeited'),
        (TYPE_SECURITY_SUBMITTED, 'Security Submitted'),
        (TYPE_SECURITY_VERIFIED, 'Security Verified'),
        (TYPE_SECURITY_CLAIMED, 'Security Claimed'),
        (TYPE_SECURITY_RELEASED, 'Security Released'),
        (TYPE_SECURITY_EXPIRING, 'Security Expiring'),
    ]

    PRIORITY_LOW = 'low'
    PRIORITY_MEDIUM = 'medium'
    PRIORITY_HIGH = 'high'
    PRIORITY_URGENT = 'urgent'

    PRIORITY_CHOICES = [
        (PRIORITY_LOW, 'Low'),
        (PRIORITY_MEDIUM, 'Medium'),
        (PRIORITY_HIGH, 'High'),
        (PRIORITY_URGENT, 'Urgent'),
    ]

    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=30, choices=TYPE_CHOICES, default=TYPE_INFO)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    link = models.CharField(max_length=500, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.recipient.username} - {self.title}"

    def mark_read(self):
        if self.is_read:
            return
        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=['is_read', 'read_at'])

    @classmethod
    def mark_all_read(cls, user):
        return cls.objects.filter(recipient=user, is_read=False).update(is_read=True, read_at=timezone.now())

    @classmethod
    def unread_count(cls, user):
        return cls.objects.filter(recipient=user, is_read=False).count()

    @classmethod
    def purge(cls, days=None, now=None):
        """Delete read notifications older than ``days`` and anything past its expiry"""
        now = now or timezone.now()
        cutoff = now - timedelta(days=retention_days() if days is None else days)
        old_read = cls.objects.filter(is_read=True, created_at__lt=cutoff)
        expired = cls.objects.filter(expires_at__isnull=False, expires_at__lt=now)
        deleted = old_read.delete()[0]
        deleted += expired.delete()[0]
        return deleted

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='idx_notification_unread'),
            models.Index(fields=['recipient', '-created_at'], name='idx_notification_recent'),
        ]
