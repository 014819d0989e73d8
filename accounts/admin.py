from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from core.models import ChurchMembership

from .models import User


class ChurchMembershipInline(admin.TabularInline):
    model = ChurchMembership
    fk_name = "user"
    extra = 0
    fields = ("church", "role", "campus", "active")


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    model = User
    inlines = [ChurchMembershipInline]
    list_display = ("email", "full_name", "is_system_admin", "is_active", "date_joined")
    list_filter = ("is_system_admin", "is_active", "church_memberships__role")
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("full_name", "phone")}),
        ("Access", {"fields": ("is_active", "is_staff", "is_superuser", "is_system_admin")}),
        ("Dates", {"fields": ("last_login", "date_joined")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "full_name", "password1", "password2")}),
    )
    readonly_fields = ("date_joined",)
    search_fields = ("email", "full_name", "phone")
    ordering = ("email",)
