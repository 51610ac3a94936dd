"""Read-only flavor and image lookups for a cloud credential."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from taikun_reconciler import convert
from taikun_reconciler.errors import ValidationError
from taikun_reconciler.ids import parse_id
from taikun_reconciler.log import log_event
from taikun_reconciler.models.cloud_credential import PROVIDER_PATHS
from taikun_reconciler.session import Session

logger = logging.getLogger("taikun.reconcile")

DEFAULT_CPU = (2, 36)
DEFAULT_RAM_GIB = (2, 500)

# Providers that report flavor RAM in bytes rather than MiB.
RAM_IN_BYTES = frozenset({"gcp"})

# Image listing filters accepted per provider.
IMAGE_FILTERS: Dict[str, tuple] = {
    "aws": ("owners", "latest", "limit"),
    "azure": ("publisher", "offer", "sku", "latest"),
    "gcp": ("type", "latest"),
    "openstack": (),
    "proxmox": (),
    "vsphere": (),
}


def _provider(cloud_type: str) -> str:
    key = str(cloud_type).lower()
    if key == "google":
        key = "gcp"
    if key not in PROVIDER_PATHS:
        raise ValidationError(f"expected one of {sorted(PROVIDER_PATHS)}, got {cloud_type!r}", "cloud_type")
    return key


def _ram_gib(provider: str, ram: Any) -> int:
    ram = int(ram or 0)
    if provider in RAM_IN_BYTES:
        return convert.bytes_to_gibi(ram)
    return convert.mebi_to_gibi(ram)


def list_flavors(
    session: Session,
    cloud_credential_id: str,
    cloud_type: str,
    min_cpu: int = DEFAULT_CPU[0],
    max_cpu: int = DEFAULT_CPU[1],
    min_ram: int = DEFAULT_RAM_GIB[0],
    max_ram: int = DEFAULT_RAM_GIB[1],
) -> List[Dict[str, Any]]:
    """Flavors offered to ``cloud_credential_id`` within inclusive cpu and RAM (GiB) bounds."""
    if min_cpu > max_cpu:
        raise ValidationError("min_cpu must not exceed max_cpu", "min_cpu")
    if min_ram > max_ram:
        raise ValidationError("min_ram must not exceed max_ram", "min_ram")
    provider = _provider(cloud_type)
    cloud_id = parse_id(cloud_credential_id, "cloud_credential_id")
    rows = session.list_all(
        lambda offset: session.client.list_flavors(
            PROVIDER_PATHS[provider],
            cloud_id,
            offset,
            start_cpu=min_cpu,
            end_cpu=max_cpu,
            start_ram=convert.gibi_to_mebi(min_ram),
            end_ram=convert.gibi_to_mebi(max_ram),
        )
    )
    flavors = []
    for row in rows:
        cpu = int(row.get("cpu") or 0)
        ram = _ram_gib(provider, row.get("ram"))
        if min_cpu <= cpu <= max_cpu and min_ram <= ram <= max_ram:
            flavors.append({"name": row.get("name"), "cpu": cpu, "ram": ram})
    flavors.sort(key=lambda f: f["name"] or "")
    log_event(logger, "flavors", cloud_credential_id=cloud_id, provider=provider, count=len(flavors))
    return flavors


def list_images(
    session: Session,
    cloud_credential_id: str,
    cloud_type: str,
    **filters: Optional[Any],
) -> List[Dict[str, Any]]:
    """Images visible to ``cloud_credential_id``; ``filters`` are provider-specific."""
    provider = _provider(cloud_type)
    allowed = IMAGE_FILTERS[provider]
    given = {k: v for k, v in filters.items() if v is not None}
    unknown = sorted(set(given) - set(allowed))
    if unknown:
        raise ValidationError(f"{provider} images do not accept this filter", unknown[0])
    if provider == "azure" and not all(given.get(k) for k in ("publisher", "offer", "sku")):
        raise ValidationError("azure images need publisher, offer and sku", "publisher")
    if provider == "gcp" and not given.get("type"):
        raise ValidationError("google images need an image type", "type")
    if isinstance(given.get("owners"), (list, tuple)):
        given["owners"] = ",".join(given["owners"])

    cloud_id = parse_id(cloud_credential_id, "cloud_credential_id")
    rows = session.list_all(
        lambda offset: session.client.list_images(PROVIDER_PATHS[provider], cloud_id, offset, **given)
    )
    images = [{"id": str(row.get("id")), "name": row.get("name")} for row in rows]
    log_event(logger, "images", cloud_credential_id=cloud_id, provider=provider, count=len(images))
    return images
