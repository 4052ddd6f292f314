from django.db import models
from django.utils import timezone


class Organization(models.Model):
    """Buyer or vendor organization. Users, tenders and contracts hang off it."""
    TYPE_CHOICES = [
        ('government', 'Government'),
        ('private', 'Private'),
        ('public_sector', 'Public Sector'),
        ('psu', 'PSU'),
        ('ngo', 'NGO'),
        ('other', 'Other'),
    ]

    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_SUSPENDED = 'suspended'
    STATUS_PENDING = 'pending_verification'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_SUSPENDED, 'Suspended'),
        (STATUS_PENDING, 'Pending Verification'),
    ]

    name = models.CharField(max_length=255, unique=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='private')
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default=STATUS_PENDING)
    registration_number = models.CharField(max_length=100, blank=True)
    tax_id = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    alternate_phone = models.CharField(max_length=20, blank=True)
    website = models.URLField(blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, blank=True, default='India')
    postal_code = models.CharField(max_length=20, blank=True)
    bank_details = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def get_settings(self):
        return (self.metadata or {}).get('settings', {})

    def update_settings(self, values, user):
        metadata = dict(self.metadata or {})
        settings = dict(metadata.get('settings', {}))
        settings.update(values)
        settings['last_updated_by'] = user.id if user else None
        settings['last_updated_at'] = timezone.now().isoformat()
        metadata['settings'] = settings
        self.metadata = metadata
        self.save(update_fields=['metadata', 'updated_at'])
        return settings

    class Meta:
        db_table = 'organizations'
        ordering = ['name']
        indexes = [
            models.Index(fields=['type'], name='idx_org_type'),
            models.Index(fields=['status'], name='idx_org_status'),
        ]
