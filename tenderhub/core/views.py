import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.exceptions import ObjectDoesNotExist
from django.db import connection
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from .models import Setting, AuditLog
from .serializers import (
    UserSerializer, UserCreateSerializer, ChangePasswordSerializer,
    SettingSerializer, AuditLogSerializer
)
from .utils import create_audit_log, is_admin_user, forbidden, paginate

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        token['organization_id'] = user.organization_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    serializer = UserCreateSerializer(data=request.data, context={'request': request})
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        logger.info(f"Registered user {user.username} with role {user.role}")
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with role-derived capabilities"""
    user = request.user
    user_data = UserSerializer(user).data
    is_admin = is_admin_user(user)
    user_data['is_admin'] = is_admin
    user_data['can_manage_tenders'] = is_admin or user.role in (User.ROLE_BUYER, User.ROLE_MANAGER)
    user_data['can_bid'] = is_admin or user.role in (User.ROLE_VENDOR, User.ROLE_USER)
    user_data['can_view_audit'] = is_admin or user.role == User.ROLE_AUDITOR
    return Response(user_data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
    if serializer.is_valid():
        request.user.set_password(serializer.validated_data['new_password'])
        request.user.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='User',
            object_id=str(request.user.id),
            object_name=request.user.username,
            changes={'password': 'changed'}
        )
        return Response({'message': 'Password changed successfully'})
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def user_list_create(request):
    """List all users or create a new user (admins only)"""
    if not is_admin_user(request.user):
        return forbidden()
    if request.method == 'GET':
        users = User.objects.select_related('organization').order_by('username')
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        organization = request.query_params.get('organization')
        if organization:
            users = users.filter(organization_id=organization)
        return paginate(request, users, UserSerializer)
    else:
        serializer = UserCreateSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            user = serializer.save()
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, pk):
    """Retrieve, update or delete a user (admins only)"""
    if not is_admin_user(request.user):
        return forbidden()
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if not is_admin_user(request.user):
        return forbidden()
    if request.method == 'GET':
        settings = Setting.objects.all().order_by('key')
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    if not is_admin_user(request.user):
        return forbidden()
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs; admins and auditors see everything, others their own"""
    queryset = AuditLog.objects.select_related('user')

    if not (is_admin_user(request.user) or request.user.role == User.ROLE_AUDITOR):
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    object_id = request.query_params.get('object_id', None)
    if object_id:
        queryset = queryset.filter(object_id=object_id)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    return paginate(request, queryset, AuditLogSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not (is_admin_user(request.user) or request.user.role == User.ROLE_AUDITOR) and audit_log.user != request.user:
        return forbidden()

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Search tenders, bids, vendors, contracts and payments"""
    query = request.query_params.get('q', '').strip()

    if not query:
        return Response({
            'tenders': [],
            'bids': [],
            'vendors': [],
            'contracts': [],
            'payments': [],
        })

    from tenderhub.tenders.models import Tender
    from tenderhub.bids.models import Bid
    from tenderhub.vendors.models import Vendor
    from tenderhub.contracts.models import Contract
    from tenderhub.payments.models import Payment
    from tenderhub.tenders.serializers import TenderListSerializer
    from tenderhub.bids.serializers import BidSerializer
    from tenderhub.vendors.serializers import VendorListSerializer
    from tenderhub.contracts.serializers import ContractListSerializer
    from tenderhub.payments.serializers import PaymentSerializer

    results = {}

    tenders = Tender.objects.exclude(status=Tender.STATUS_DRAFT).filter(
        Q(title__icontains=query) |
        Q(reference_number__icontains=query) |
        Q(description__icontains=query)
    )[:20]
    results['tenders'] = TenderListSerializer(tenders, many=True).data

    bids = Bid.objects.filter(Q(reference_number__icontains=query))
    if not is_admin_user(request.user):
        bids = bids.filter(Q(vendor=request.user) | Q(tender__created_by=request.user))
    results['bids'] = BidSerializer(bids[:20], many=True).data

    vendors = Vendor.objects.filter(
        Q(legal_name__icontains=query) |
        Q(trade_name__icontains=query) |
        Q(registration_number__icontains=query)
    )[:20]
    results['vendors'] = VendorListSerializer(vendors, many=True).data

    contracts = Contract.objects.filter(
        Q(contract_number__icontains=query) | Q(title__icontains=query)
    )
    if not is_admin_user(request.user):
        contracts = contracts.filter(
            Q(buyer_organization_id=request.user.organization_id) |
            Q(vendor_organization_id=request.user.organization_id) |
            Q(created_by=request.user)
        )
    results['contracts'] = ContractListSerializer(contracts[:20], many=True).data

    payments = Payment.objects.filter(
        Q(payment_number__icontains=query) | Q(gateway_transaction_id__icontains=query)
    )
    if not is_admin_user(request.user):
        payments = payments.filter(created_by=request.user)
    results['payments'] = PaymentSerializer(payments[:20], many=True).data

    return Response(results)


@api_view(['GET'])
@permission_classes([AllowAny])
def health(request):
    """Database and cache reachability"""
    checks = {'database': 'ok', 'cache': 'ok'}
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
    except Exception as e:
        logger.error(f"Health check database failure: {str(e)}")
        checks['database'] = 'error'
    try:
        cache.set('health_check', 'ok', 5)
        if cache.get('health_check') != 'ok':
            checks['cache'] = 'error'
    except Exception as e:
        logger.error(f"Health check cache failure: {str(e)}")
        checks['cache'] = 'error'

    healthy = all(value == 'ok' for value in checks.values())
    return Response(
        {'status': 'ok' if healthy else 'degraded', 'checks': checks, 'timestamp': timezone.now().isoformat()},
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    )
