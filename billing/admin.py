from django.contrib import admin
from .models import (
    Client, Company, PaymentMethod, ServiceLibrary, Order,
    RecurringSubscription, Invoice, Payment, PaymentReminder, RevokedToken
)

@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ('name', 'email', 'company', 'preferred_currency', 'created_at')
    search_fields = ('name', 'email', 'company')

@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ('name', 'user', 'default_currency', 'is_default', 'is_active')
    list_filter = ('is_default', 'is_active')
    search_fields = ('name', 'legal_name', 'user__email')

@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ('name', 'company', 'type', 'is_default', 'is_active')
    list_filter = ('type',)

@admin.register(ServiceLibrary)
class ServiceLibraryAdmin(admin.ModelAdmin):
    list_display = ('name', 'category', 'default_price', 'currency', 'is_recurring', 'is_active')
    list_filter = ('category', 'is_recurring', 'is_active')
    search_fields = ('name',)

@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'client', 'description', 'amount', 'frequency', 'status', 'next_invoice_date')
    list_filter = ('status', 'frequency')
    search_fields = ('client__name', 'description')


@admin.register(RecurringSubscription)
class RecurringSubscriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'client', 'service', 'price', 'billing_day', 'status', 'next_billing_date')
    list_filter = ('status',)
    search_fields = ('client__name', 'service__name')


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'client', 'company', 'status', 'amount', 'currency', 'due_date')
    list_filter = ('status', 'currency')
    search_fields = ('invoice_number', 'client__name')
    readonly_fields = ('sent_date', 'paid_date', 'created_at', 'updated_at')


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'invoice', 'amount', 'method', 'paid_date')
    list_filter = ('method',)
    search_fields = ('invoice__invoice_number', 'reference')


@admin.register(PaymentReminder)
class PaymentReminderAdmin(admin.ModelAdmin):
    list_display = ('invoice', 'reminder_type', 'sent_at')
    list_filter = ('reminder_type',)
    readonly_fields = ('sent_at',)


admin.site.register(RevokedToken)
