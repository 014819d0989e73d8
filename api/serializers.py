from rest_framework import serializers

from core.models import Event, EventTemplate, Ministry, MinistryRole, TemplateAgendaItem, TemplatePosition
from core.services.templates import configuration_warnings, ordered_agenda, ordered_positions


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class TemplateHeaderInputSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    eventType = serializers.CharField(source="event_type", required=False)
    visibility = serializers.CharField(required=False)
    defaultStartTime = serializers.CharField(source="default_start_time", required=False, allow_null=True)
    defaultDurationMinutes = serializers.IntegerField(source="default_duration_minutes", required=False, allow_null=True)
    locationId = serializers.IntegerField(source="location_id", required=False, allow_null=True)
    campusId = serializers.IntegerField(source="campus_id", required=False, allow_null=True)
    responsiblePersonId = serializers.IntegerField(source="responsible_person_id", required=False, allow_null=True)
    invitedUserIds = serializers.ListField(
        source="invited_user_ids", child=serializers.IntegerField(), required=False, allow_empty=True
    )


class AgendaItemInputSerializer(serializers.Serializer):
    title = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    durationSeconds = serializers.IntegerField(source="duration_seconds", required=False, allow_null=True)
    isSongPlaceholder = serializers.BooleanField(source="is_song_placeholder", required=False)
    ministryId = serializers.IntegerField(source="ministry_id", required=False, allow_null=True)


class PositionPairSerializer(serializers.Serializer):
    ministryId = serializers.IntegerField(source="ministry_id")
    roleId = serializers.IntegerField(source="role_id", required=False, allow_null=True)


class PositionBatchInputSerializer(serializers.Serializer):
    positions = PositionPairSerializer(many=True, allow_empty=False)


class PositionUpdateInputSerializer(serializers.Serializer):
    quantityNeeded = serializers.IntegerField(source="quantity_needed", required=False)
    title = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class ReorderInputSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)


class MoveInputSerializer(serializers.Serializer):
    direction = serializers.CharField()


class InstantiateInputSerializer(serializers.Serializer):
    dates = serializers.ListField(child=serializers.CharField(), allow_empty=True)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class TemplateAgendaItemSerializer(serializers.ModelSerializer):
    durationSeconds = serializers.IntegerField(source="duration_seconds")
    isSongPlaceholder = serializers.BooleanField(source="is_song_placeholder")
    ministryId = serializers.IntegerField(source="ministry_id", allow_null=True)
    sortOrder = serializers.IntegerField(source="sort_order", allow_null=True)

    class Meta:
        model = TemplateAgendaItem
        fields = ["id", "title", "description", "durationSeconds", "isSongPlaceholder", "ministryId", "sortOrder"]


class TemplatePositionSerializer(serializers.ModelSerializer):
    ministryId = serializers.IntegerField(source="ministry_id")
    ministryName = serializers.CharField(source="ministry.name")
    roleId = serializers.IntegerField(source="role_id", allow_null=True)
    roleName = serializers.SerializerMethodField()
    quantityNeeded = serializers.IntegerField(source="quantity_needed")
    sortOrder = serializers.IntegerField(source="sort_order", allow_null=True)

    class Meta:
        model = TemplatePosition
        fields = ["id", "ministryId", "ministryName", "roleId", "roleName", "title", "quantityNeeded", "notes", "sortOrder"]

    def get_roleName(self, obj):
        return obj.role.name if obj.role_id else None


class EventTemplateSerializer(serializers.ModelSerializer):
    eventType = serializers.CharField(source="event_type")
    defaultStartTime = serializers.TimeField(source="default_start_time", format="%H:%M")
    defaultDurationMinutes = serializers.IntegerField(source="default_duration_minutes")
    locationId = serializers.IntegerField(source="location_id", allow_null=True)
    campusId = serializers.IntegerField(source="campus_id", allow_null=True)
    responsiblePersonId = serializers.IntegerField(source="responsible_person_id", allow_null=True)
    invitedUserIds = serializers.SerializerMethodField()
    agendaItemCount = serializers.SerializerMethodField()
    positionCount = serializers.SerializerMethodField()
    capabilities = serializers.SerializerMethodField()

    class Meta:
        model = EventTemplate
        fields = [
            "id",
            "name",
            "description",
            "eventType",
            "visibility",
            "defaultStartTime",
            "defaultDurationMinutes",
            "locationId",
            "campusId",
            "responsiblePersonId",
            "invitedUserIds",
            "agendaItemCount",
            "positionCount",
            "capabilities",
        ]

    def get_invitedUserIds(self, obj):
        return sorted(user.pk for user in obj.invited_users.all())

    def get_agendaItemCount(self, obj):
        count = getattr(obj, "agenda_item_count", None)
        return obj.agenda_items.count() if count is None else count

    def get_positionCount(self, obj):
        count = getattr(obj, "position_count", None)
        if count is None:
            count = sum(obj.positions.values_list("quantity_needed", flat=True))
        return count

    def get_capabilities(self, obj):
        capabilities = self.context.get("capabilities") or {}
        return {
            "canManage": capabilities.get("can_manage", False),
            "canDelete": capabilities.get("can_delete", False),
        }


class EventTemplateDetailSerializer(EventTemplateSerializer):
    agendaItems = serializers.SerializerMethodField()
    positions = serializers.SerializerMethodField()
    warnings = serializers.SerializerMethodField()

    class Meta(EventTemplateSerializer.Meta):
        fields = EventTemplateSerializer.Meta.fields + ["agendaItems", "positions", "warnings"]

    def get_agendaItems(self, obj):
        return TemplateAgendaItemSerializer(ordered_agenda(obj), many=True).data

    def get_positions(self, obj):
        return TemplatePositionSerializer(ordered_positions(obj), many=True).data

    def get_warnings(self, obj):
        return configuration_warnings(obj)


class MinistryRoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = MinistryRole
        fields = ["id", "name"]


class MinistrySerializer(serializers.ModelSerializer):
    roles = MinistryRoleSerializer(many=True, read_only=True)

    class Meta:
        model = Ministry
        fields = ["id", "name", "color", "roles"]


class EventSerializer(serializers.ModelSerializer):
    templateId = serializers.IntegerField(source="template_id", allow_null=True)
    eventType = serializers.CharField(source="event_type")
    startTime = serializers.DateTimeField(source="start_time")
    endTime = serializers.DateTimeField(source="end_time")

    class Meta:
        model = Event
        fields = ["id", "templateId", "title", "eventType", "startTime", "endTime", "status", "visibility"]
