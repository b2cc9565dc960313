"""Match BroadLink devices and scenes against existing Webhooks Applets."""

from typing import Dict, Iterable, List, Set, Tuple

from ..core.models import (
    AppletGroup,
    AppletState,
    AutomationEntity,
    LocalTarget,
    ReconciliationResult,
    TargetKind
)


_KIND_ORDER = {TargetKind.DEVICE: 0, TargetKind.SCENE: 1}
_STATE_ORDER = {AppletState.ON: 0, AppletState.OFF: 1, AppletState.SCENE: 2}


def name_sort_key(name: str) -> Tuple[str, str]:
    """Case-insensitive ordering with a case-sensitive tie-break, so output is stable."""
    return (name.casefold(), name)


def target_sort_key(target: LocalTarget):
    return (_KIND_ORDER[target.kind], name_sort_key(target.name))


def entity_sort_key(entity: AutomationEntity):
    return (
        _KIND_ORDER[entity.kind],
        name_sort_key(entity.target_name),
        _STATE_ORDER[entity.state],
        entity.applet_id
    )


def sort_targets(targets: Iterable[LocalTarget]) -> List[LocalTarget]:
    """Devices first, then scenes, each by name."""
    return sorted(set(targets), key=target_sort_key)


def sort_entities(entities: Iterable[AutomationEntity]) -> List[AutomationEntity]:
    return sorted(set(entities), key=entity_sort_key)


def reconcile(
    local_targets: Iterable[LocalTarget],
    remote_entities: Iterable[AutomationEntity],
    group: AppletGroup
) -> ReconciliationResult:
    """
    Decide which Applets to create, skip and remove for the requested group.

    A (target, state) pair is skipped only when an Applet with exactly the
    same title exists. An Applet is orphaned when its decoded target name is
    not among the current BroadLink names of the same kind. Targets and
    Applets outside the group are ignored entirely.

    The result does not depend on the order of the inputs.
    """
    targets = [t for t in sort_targets(local_targets) if group.includes(t.kind)]
    entities = [e for e in sort_entities(remote_entities) if group.includes(e.kind)]

    result = ReconciliationResult()

    existing_titles: Set[str] = {entity.display_name for entity in entities}
    for target in targets:
        for state in target.states:
            if target.display_name(state) in existing_titles:
                result.to_skip.append((target, state))
            else:
                result.to_create.append((target, state))

    local_names: Dict[TargetKind, Set[str]] = {kind: set() for kind in TargetKind}
    for target in targets:
        local_names[target.kind].add(target.name)

    for entity in entities:
        if entity.target_name in local_names[entity.kind]:
            result.still_backed.append(entity)
        else:
            result.to_remove.append(entity)

    return result
