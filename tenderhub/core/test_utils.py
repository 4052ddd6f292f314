"""
Test utilities and factories for creating test data
"""
from datetime import timedelta
from decimal import Decimal
import random
import string

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from tenderhub.organizations.models import Organization
from tenderhub.tenders.models import Tender
from tenderhub.vendors.models import Vendor
from tenderhub.bids.models import Bid
from tenderhub.emd.models import Emd
from tenderhub.contracts.models import Contract
from tenderhub.payments.models import Payment, Invoice
from tenderhub.security.models import SecurityInstrument

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=User.ROLE_BUYER,
                    organization=None, is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            organization=organization,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_admin(**kwargs):
        kwargs.setdefault('role', User.ROLE_ADMIN)
        return TestDataFactory.create_user(**kwargs)

    @staticmethod
    def create_vendor_user(organization=None, **kwargs):
        """Create a vendor-role user, with its own organization unless one is given"""
        kwargs.setdefault('role', User.ROLE_VENDOR)
        return TestDataFactory.create_user(
            organization=organization or TestDataFactory.create_organization(), **kwargs
        )

    @staticmethod
    def create_organization(name=None, type='private', status=Organization.STATUS_ACTIVE):
        """Create a test organization"""
        if not name:
            name = f'Org_{TestDataFactory.random_string(6)}'
        return Organization.objects.create(
            name=name,
            type=type,
            status=status,
            email=f"{name.lower().replace(' ', '-')}@test.com",
            city='Pune'
        )

    @staticmethod
    def create_tender(user=None, organization=None, status=Tender.STATUS_DRAFT, days_open=10,
                      estimated_value=Decimal('100000.00'), emd_amount=None, is_emd_required=False, **kwargs):
        """Create a test tender; published tenders are open for ``days_open`` more days"""
        if not user:
            user = TestDataFactory.create_user()
        if organization is None:
            organization = user.organization
        now = timezone.now()
        defaults = {
            'reference_number': f'TND-{TestDataFactory.random_string(8).upper()}',
            'title': f'Tender {TestDataFactory.random_string(6)}',
            'description': 'Supply of office equipment. Bidders must hold ISO 9001 certification.',
            'bid_start_date': now,
            'bid_end_date': now + timedelta(days=days_open),
            'publish_date': now if status != Tender.STATUS_DRAFT else None,
        }
        defaults.update(kwargs)
        return Tender.objects.create(
            status=status,
            estimated_value=estimated_value,
            emd_amount=emd_amount,
            is_emd_required=is_emd_required,
            organization=organization,
            created_by=user,
            **defaults
        )

    @staticmethod
    def create_bid(tender=None, vendor=None, status=Bid.STATUS_DRAFT, quoted_amount=Decimal('90000.00'), **kwargs):
        """Create a test bid"""
        if not tender:
            tender = TestDataFactory.create_tender(status=Tender.STATUS_PUBLISHED)
        if not vendor:
            vendor = TestDataFactory.create_vendor_user()
        kwargs.setdefault('delivery_period', '30 days')
        if status != Bid.STATUS_DRAFT:
            kwargs.setdefault('submitted_at', timezone.now())
        return Bid.objects.create(
            tender=tender,
            vendor=vendor,
            organization=tender.organization,
            status=status,
            quoted_amount=quoted_amount,
            **kwargs
        )

    @staticmethod
    def create_vendor(organization=None, legal_name=None, category='supplier', **kwargs):
        """Create a vendor profile"""
        if not organization:
            organization = TestDataFactory.create_organization()
        return Vendor.objects.create(
            organization=organization,
            legal_name=legal_name or f'{organization.name} Pvt Ltd',
            category=category,
            primary_contact_email=f"contact@{organization.name.lower().replace(' ', '-')}.test",
            **kwargs
        )

    @staticmethod
    def create_emd(tender=None, vendor=None, amount=Decimal('2000.00'), status=Emd.STATUS_PENDING, **kwargs):
        """Create an EMD for ``vendor`` against ``tender``"""
        if not tender:
            tender = TestDataFactory.create_tender(
                status=Tender.STATUS_PUBLISHED, emd_amount=amount, is_emd_required=True
            )
        if not vendor:
            vendor = TestDataFactory.create_vendor_user()
        return Emd.objects.create(tender=tender, vendor=vendor, amount=amount, status=status, **kwargs)

    @staticmethod
    def create_contract(user=None, vendor_organization=None, buyer_organization=None,
                        status=Contract.STATUS_DRAFT, contract_value=Decimal('500000.00'), **kwargs):
        """Create a contract running from today for a year"""
        if not user:
            user = TestDataFactory.create_user(organization=TestDataFactory.create_organization())
        if not vendor_organization:
            vendor_organization = TestDataFactory.create_organization()
        if buyer_organization is None:
            buyer_organization = user.organization
        today = timezone.localdate()
        kwargs.setdefault('start_date', today)
        kwargs.setdefault('end_date', today + timedelta(days=365))
        return Contract.objects.create(
            title=f'Contract {TestDataFactory.random_string(6)}',
            status=status,
            contract_value=contract_value,
            vendor_organization=vendor_organization,
            buyer_organization=buyer_organization,
            created_by=user,
            **kwargs
        )

    @staticmethod
    def create_active_contract(user=None, **kwargs):
        """Create an approved contract, sign it twice and activate it"""
        contract = TestDataFactory.create_contract(user=user, status=Contract.STATUS_APPROVED, **kwargs)
        contract.sign(contract.created_by, 'Buyer', 'buyer')
        contract.sign(TestDataFactory.create_vendor_user(organization=contract.vendor_organization), 'Vendor', 'vendor')
        contract.activate()
        return contract

    @staticmethod
    def create_payment(user=None, amount=Decimal('1000.00'), status=Payment.STATUS_PENDING, **kwargs):
        """Create a payment with its opening transaction"""
        if not user:
            user = TestDataFactory.create_user(organization=TestDataFactory.create_organization())
        kwargs.setdefault('organization', user.organization)
        payment = Payment.objects.create(
            amount=amount,
            status=status,
            created_by=user,
            **kwargs
        )
        payment.open_transaction()
        return payment

    @staticmethod
    def create_invoice(user=None, status=Invoice.STATUS_DRAFT, line_items=None, tax_rate=Decimal('18.00'), **kwargs):
        """Create an invoice with computed totals"""
        if not user:
            user = TestDataFactory.create_user(organization=TestDataFactory.create_organization())
        kwargs.setdefault('organization', user.organization)
        invoice = Invoice(
            status=status,
            line_items=line_items or [
                {'description': 'Laptops', 'quantity': '2', 'unit_price': '500.00'},
            ],
            tax_rate=tax_rate,
            created_by=user,
            **kwargs
        )
        invoice.compute_totals()
        invoice.save()
        return invoice

    @staticmethod
    def create_security_instrument(provider=None, tender=None, contract=None, kind=SecurityInstrument.KIND_BANK_GUARANTEE,
                                   amount=Decimal('10000.00'), status=SecurityInstrument.STATUS_DRAFT, **kwargs):
        """Create a security instrument furnished by ``provider`` against a tender unless a contract is given"""
        if not provider:
            provider = TestDataFactory.create_vendor_user()
        if tender is None and contract is None:
            tender = TestDataFactory.create_tender(status=Tender.STATUS_PUBLISHED)
        kwargs.setdefault('expiry_date', timezone.localdate() + timedelta(days=180))
        return SecurityInstrument.objects.create(
            kind=kind,
            amount=amount,
            status=status,
            organization=provider.organization,
            tender=tender,
            contract=contract,
            created_by=provider,
            **kwargs
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
