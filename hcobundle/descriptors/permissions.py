"""
Service account namespacing.

Permissions are granted per component and never merged across components.
When two components declare the same service account, the later one gets
its own account so one component's rules cannot widen the other's.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from .models import ComponentDescriptor

logger = logging.getLogger(__name__)


def namespace_service_accounts(
    descriptors: Sequence[ComponentDescriptor],
    reserved: Sequence[str] = (),
) -> list[ComponentDescriptor]:
    """
    Rename colliding service accounts to ``<component>-<account>``.

    The first component to declare an account keeps it. Accounts listed in
    ``reserved`` are treated as already taken.

    Returns:
        The descriptors in the same order, renamed where needed
    """
    owners: dict[str, str] = {name: "" for name in reserved}
    result: list[ComponentDescriptor] = []

    for descriptor in descriptors:
        renames: dict[str, str] = {}
        for account in descriptor.service_account_names:
            owner = owners.get(account)
            if owner is None or owner == descriptor.name:
                owners[account] = descriptor.name
                continue
            new_name = f"{descriptor.name}-{account}"
            renames[account] = new_name
            owners[new_name] = descriptor.name
            logger.info(
                f"[{descriptor.name}] Service account {account!r} already used by "
                f"{owner or 'the operator'}; renamed to {new_name!r}"
            )
        result.append(descriptor.with_service_accounts_renamed(renames))

    return result
