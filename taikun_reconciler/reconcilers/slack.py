from __future__ import annotations

from typing import Any, Dict, Optional, Set

from taikun_reconciler import convert
from taikun_reconciler.client import Page
from taikun_reconciler.ids import parse_id
from taikun_reconciler.models.base import audit_fields, str_id
from taikun_reconciler.models.slack import SlackConfiguration
from taikun_reconciler.reconcilers.base import Reconciler


class SlackConfigurationReconciler(Reconciler[SlackConfiguration]):
    kind = "slack_configuration"
    model = SlackConfiguration

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_slack_configurations(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> SlackConfiguration:
        return SlackConfiguration.observed({
            "id": str_id(raw.get("id")),
            "name": raw.get("name"),
            "url": raw.get("url"),
            "channel": raw.get("channel"),
            "type": convert.slack_type_name(raw.get("slackType")),
            "organization_id": str_id(raw.get("organizationId")),
            "organization_name": raw.get("organizationName"),
            **audit_fields(raw),
        })

    def _body(self, desired: SlackConfiguration) -> Dict[str, Any]:
        return {
            "name": desired.name,
            "url": desired.url,
            "channel": desired.channel,
            "slackType": convert.slack_type(desired.type),
            "organizationId": int(desired.organization_id),
        }

    def _create(self, desired: SlackConfiguration) -> str:
        return self.client.create_slack_configuration(self._body(desired))

    def _update(self, id: str, desired: SlackConfiguration, observed: SlackConfiguration, changed: Set[str]) -> None:
        self.client.update_slack_configuration(parse_id(id), self._body(desired))

    def _delete(self, id: str) -> None:
        self.client.delete_slack_configurations([parse_id(id)])
