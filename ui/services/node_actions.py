"""Interaction callbacks shared by the canvas and list views.

Both views bind their controls through these builders so an edit made in
either one runs the same session mutator.
"""

from typing import Any, Callable, Dict, Mapping, Optional


def condition_callbacks(actions, condition_id: str) -> Dict[str, Callable]:
    if actions is None:
        return {}

    def on_update(patch: Mapping[str, Any]):
        actions.update_condition(condition_id, patch)

    def on_remove():
        actions.remove_condition(condition_id)

    return {"on_update": on_update, "on_remove": on_remove}


def group_callbacks(actions, group_id: str, is_root: bool) -> Dict[str, Callable]:
    if actions is None:
        return {}

    def on_update_operator(operator):
        actions.set_group_operator(group_id, operator)

    def on_remove():
        # Root is emptied, never removed
        if is_root:
            actions.clear_root()
        else:
            actions.remove_group(group_id)

    def on_add_condition(condition_type: Optional[Any] = None):
        if condition_type is None:
            actions.add_condition_to_group(group_id)
        else:
            actions.add_condition_to_group(group_id, condition_type)

    def on_add_group():
        actions.add_group_to_group(group_id)

    return {
        "on_update_operator": on_update_operator,
        "on_remove": on_remove,
        "on_add_condition": on_add_condition,
        "on_add_group": on_add_group,
    }


def missing_callbacks(actions, ref_id: str) -> Dict[str, Callable]:
    if actions is None:
        return {}

    def on_remove():
        actions.remove_ref(ref_id)

    return {"on_remove": on_remove}
