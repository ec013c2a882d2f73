"""Loyalman admin.

Counters and ledger entries are read-only here: every point movement goes
through the ledger services so that an entry is always written.
"""

from django.contrib import admin
from django.utils.html import format_html

from loyalman.models import ChannelProgram, LedgerEntry, LoyaltyMember, LoyaltyProgram, Reward


# ===========================================
# Program Admin
# ===========================================


class ChannelProgramInline(admin.TabularInline):
    model = ChannelProgram
    extra = 0
    fields = [
        "channel",
        "points_per_dollar",
        "points_per_night",
        "service_multipliers",
        "points_to_money_ratio",
        "minimum_redemption",
        "maximum_redemption",
    ]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(LoyaltyProgram)
class LoyaltyProgramAdmin(admin.ModelAdmin):
    list_display = ["hotel_id", "tier_summary", "expiration_months", "member_count", "is_active", "updated_at"]
    list_filter = ["is_active"]
    search_fields = ["hotel_id"]
    readonly_fields = ["tier_table", "created_at", "updated_at"]
    inlines = [ChannelProgramInline]

    def tier_summary(self, obj):
        return ", ".join(t["name"] for t in obj.tier_table)

    tier_summary.short_description = "Tiers"

    def member_count(self, obj):
        return obj.members.count()

    member_count.short_description = "Members"


# ===========================================
# Reward Admin
# ===========================================


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "hotel",
        "category",
        "points_cost",
        "value",
        "required_tier",
        "times_redeemed",
        "is_active",
    ]
    list_filter = ["category", "is_active"]
    search_fields = ["name", "program__hotel_id"]
    list_select_related = ["program"]
    readonly_fields = ["times_redeemed", "total_value_redeemed", "created_by", "created_at", "updated_at"]

    def has_delete_permission(self, request, obj=None):
        return False

    def hotel(self, obj):
        return obj.program.hotel_id

    hotel.short_description = "Hotel"


# ===========================================
# Member Admin
# ===========================================


class LedgerEntryInline(admin.TabularInline):
    model = LedgerEntry
    extra = 0
    fields = ["created_at", "entry_type", "amount", "tier_points_delta", "resulting_available_points", "reason"]
    readonly_fields = fields
    ordering = ["-created_at"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LoyaltyMember)
class LoyaltyMemberAdmin(admin.ModelAdmin):
    list_display = [
        "guest_id",
        "hotel",
        "channel",
        "tier_badge",
        "tier_points",
        "available_points",
        "is_active",
        "last_activity",
    ]
    list_filter = ["channel", "current_tier", "is_active"]
    search_fields = ["guest_id", "program__hotel_id"]
    list_select_related = ["program"]
    readonly_fields = [
        "program",
        "guest_id",
        "channel",
        "tier_points",
        "available_points",
        "current_tier",
        "lifetime_points_earned",
        "lifetime_points_redeemed",
        "lifetime_spending",
        "total_nights_stayed",
        "version",
        "joined_at",
        "last_activity",
    ]
    inlines = [LedgerEntryInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def hotel(self, obj):
        return obj.program.hotel_id

    hotel.short_description = "Hotel"

    def tier_badge(self, obj):
        tier = obj.program.get_tier_table().get(obj.current_tier)
        color = tier.display_color if tier else "#6c757d"
        return format_html(
            '<span style="background:{}; color:#000; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            color,
            obj.current_tier,
        )

    tier_badge.short_description = "Tier"


# ===========================================
# Ledger Admin
# ===========================================


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "guest",
        "entry_type",
        "points_display",
        "resulting_available_points",
        "tier_after",
        "reason",
    ]
    list_filter = ["entry_type", "mode"]
    search_fields = ["member__guest_id", "reason", "reference", "actor_id"]
    list_select_related = ["member"]
    date_hierarchy = "created_at"

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def guest(self, obj):
        return obj.member.guest_id

    guest.short_description = "Guest"

    def points_display(self, obj):
        if obj.amount > 0:
            return format_html('<span style="color:green">+{}</span>', obj.amount)
        return format_html('<span style="color:red">{}</span>', obj.amount)

    points_display.short_description = "Points"
