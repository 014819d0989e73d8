from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from api.exceptions import status_for
from api.serializers import (
    AgendaItemInputSerializer,
    EventSerializer,
    EventTemplateDetailSerializer,
    EventTemplateSerializer,
    InstantiateInputSerializer,
    MinistrySerializer,
    MoveInputSerializer,
    PositionBatchInputSerializer,
    PositionUpdateInputSerializer,
    ReorderInputSerializer,
    TemplateAgendaItemSerializer,
    TemplateHeaderInputSerializer,
    TemplatePositionSerializer,
)
from core.models import Event, Ministry
from core.services import templates as template_service
from core.services.duplication import duplicate_from_detail
from core.services.instantiation import ALL_CREATED, NONE_CREATED, instantiate_template
from core.services.permissions import default_policy, request_principal
from core.services.templates import invitee_ids


class ChurchScopedMixin:
    def get_queryset(self):
        church = getattr(self.request, "active_church", None)
        return super().get_queryset().filter(church=church)


class ChurchServiceMixin:
    """Shared plumbing for views that call the template services."""

    @property
    def church(self):
        return self.request.active_church

    @property
    def principal(self):
        return request_principal(self.request)

    def validated(self, serializer_class, partial=False):
        serializer = serializer_class(data=self.request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    def capability_context(self):
        return {"capabilities": template_service.template_capabilities(self.principal)}

    def detail_response(self, template, code=status.HTTP_200_OK):
        context = self.capability_context()
        return Response(EventTemplateDetailSerializer(template, context=context).data, status=code)


class EventTemplateViewSet(ChurchServiceMixin, viewsets.ViewSet):
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = r"\d+"

    def list(self, request):
        items = template_service.list_templates(self.principal, self.church)
        return Response(EventTemplateSerializer(items, many=True, context=self.capability_context()).data)

    def create(self, request):
        data = self.validated(TemplateHeaderInputSerializer)
        template = template_service.create_template(self.principal, self.church, data)
        return self.detail_response(template, status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        template = template_service.get_template(self.principal, self.church, pk)
        return self.detail_response(template)

    def partial_update(self, request, pk=None):
        data = self.validated(TemplateHeaderInputSerializer, partial=True)
        template = template_service.update_template(self.principal, self.church, pk, data)
        return self.detail_response(template)

    def destroy(self, request, pk=None):
        template_service.delete_template(self.principal, self.church, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def duplicate(self, request, pk=None):
        outcome = duplicate_from_detail(self.principal, self.church, pk)
        if not outcome.ok:
            raise outcome.error
        response = self.detail_response(outcome.template, status.HTTP_201_CREATED)
        response.data["message"] = outcome.message
        return response

    @action(detail=True, methods=["post"])
    def instantiate(self, request, pk=None):
        data = self.validated(InstantiateInputSerializer)
        result = instantiate_template(self.principal, self.church, pk, data["dates"])
        if result.status == ALL_CREATED:
            return Response(result.as_payload(), status=status.HTTP_201_CREATED)
        payload = result.as_payload()
        payload["message"] = result.summary()
        code = status_for(result.error) if result.status == NONE_CREATED else status.HTTP_409_CONFLICT
        return Response(payload, status=code)

    # -- agenda -------------------------------------------------------------

    @action(detail=True, methods=["post"], url_path="agenda", url_name="agenda")
    def add_agenda_item(self, request, pk=None):
        data = self.validated(AgendaItemInputSerializer)
        item = template_service.add_agenda_item(self.principal, self.church, pk, data)
        return Response(TemplateAgendaItemSerializer(item).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="agenda/reorder", url_name="agenda-reorder")
    def reorder_agenda(self, request, pk=None):
        data = self.validated(ReorderInputSerializer)
        items = template_service.reorder_agenda_items(self.principal, self.church, pk, data["ids"])
        return Response(TemplateAgendaItemSerializer(items, many=True).data)

    @action(detail=True, methods=["patch", "delete"], url_path=r"agenda/(?P<item_id>\d+)", url_name="agenda-item")
    def agenda_item(self, request, pk=None, item_id=None):
        item_id = int(item_id)
        if request.method == "DELETE":
            template_service.remove_agenda_item(self.principal, self.church, pk, item_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
        data = self.validated(AgendaItemInputSerializer, partial=True)
        item = template_service.update_agenda_item(self.principal, self.church, pk, item_id, data)
        return Response(TemplateAgendaItemSerializer(item).data)

    @action(detail=True, methods=["post"], url_path=r"agenda/(?P<item_id>\d+)/move", url_name="agenda-item-move")
    def move_agenda_item(self, request, pk=None, item_id=None):
        data = self.validated(MoveInputSerializer)
        items = template_service.move_agenda_item(self.principal, self.church, pk, int(item_id), data["direction"])
        return Response(TemplateAgendaItemSerializer(items, many=True).data)

    # -- positions ----------------------------------------------------------

    @action(detail=True, methods=["post"], url_path="positions", url_name="positions")
    def add_positions(self, request, pk=None):
        data = self.validated(PositionBatchInputSerializer)
        pairs = [(pair["ministry_id"], pair.get("role_id")) for pair in data["positions"]]
        created, skipped = template_service.add_positions(self.principal, self.church, pk, pairs)
        return Response(
            {"created": TemplatePositionSerializer(created, many=True).data, "skipped": len(skipped)},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=True, methods=["post"], url_path="positions/reorder", url_name="positions-reorder")
    def reorder_positions(self, request, pk=None):
        data = self.validated(ReorderInputSerializer)
        positions = template_service.reorder_positions(self.principal, self.church, pk, data["ids"])
        return Response(TemplatePositionSerializer(positions, many=True).data)

    @action(detail=True, methods=["patch", "delete"], url_path=r"positions/(?P<position_id>\d+)", url_name="position")
    def position(self, request, pk=None, position_id=None):
        position_id = int(position_id)
        if request.method == "DELETE":
            template_service.remove_position(self.principal, self.church, pk, position_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
        data = self.validated(PositionUpdateInputSerializer, partial=True)
        position = template_service.update_position(
            self.principal,
            self.church,
            pk,
            position_id,
            quantity=data.get("quantity_needed"),
            title=data.get("title"),
            notes=data.get("notes"),
        )
        return Response(TemplatePositionSerializer(position).data)

    @action(detail=True, methods=["post"], url_path=r"positions/(?P<position_id>\d+)/move", url_name="position-move")
    def move_position(self, request, pk=None, position_id=None):
        data = self.validated(MoveInputSerializer)
        positions = template_service.move_position(
            self.principal, self.church, pk, int(position_id), data["direction"]
        )
        return Response(TemplatePositionSerializer(positions, many=True).data)


class MinistryViewSet(ChurchScopedMixin, viewsets.ReadOnlyModelViewSet):
    queryset = Ministry.objects.filter(active=True).prefetch_related("roles")
    serializer_class = MinistrySerializer
    permission_classes = [permissions.IsAuthenticated]


class EventViewSet(ChurchScopedMixin, viewsets.ReadOnlyModelViewSet):
    queryset = Event.objects.prefetch_related("invited_users")
    serializer_class = EventSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        principal = request_principal(self.request)
        policy = default_policy()
        readable = [
            event.id
            for event in super().get_queryset()
            if policy.can_read(principal, event.visibility, invitee_ids(event))
        ]
        return super().get_queryset().filter(id__in=readable)
