from django.contrib import admin
from .models import Payment, Transaction, Invoice


class TransactionInline(admin.TabularInline):
    model = Transaction
    extra = 0
    readonly_fields = ['transaction_number', 'type', 'status', 'amount', 'gateway_transaction_id', 'created_at']
    can_delete = False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['payment_number', 'amount', 'currency', 'type', 'method', 'status', 'organization', 'created_at']
    list_filter = ['status', 'type', 'method', 'gateway']
    search_fields = ['payment_number', 'gateway_transaction_id', 'description']
    ordering = ['-created_at']
    readonly_fields = ['payment_number', 'gateway_response', 'completed_at', 'refunded_at', 'created_at', 'updated_at']
    inlines = [TransactionInline]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'status', 'total_amount', 'due_date', 'organization', 'created_at']
    list_filter = ['status']
    search_fields = ['invoice_number', 'organization__name']
    ordering = ['-created_at']
    readonly_fields = ['invoice_number', 'subtotal', 'tax_amount', 'total_amount', 'sent_at', 'paid_at',
                       'created_at', 'updated_at']
