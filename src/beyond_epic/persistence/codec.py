from __future__ import annotations

import json
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from ..errors import MalformedSnapshot, UnknownEffect
from ..modifiers import EffectRegistry, ForceOutcome, ModifierSet, StackingCounter
from ..progress import DEFAULT_BACKGROUND, PlayerSettings, ProgressState, RarestFind
from ..settings import AutoClickerSettings
from ..shop import AUTO_CLICKER_ID

logger = logging.getLogger(__name__)


# ---------------------- coercion helpers ----------------------
# Snapshots are user-editable files; every field falls back to its zero value.

def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return default


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value)
    return None


def _as_str(value: Any, default: Optional[str]) -> Optional[str]:
    return value if isinstance(value, str) else default


def _as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _as_count_map(value: Any) -> Dict[str, int]:
    if not isinstance(value, dict):
        return {}
    out: Dict[str, int] = {}
    for name, count in value.items():
        n = _as_int(count, -1)
        if isinstance(name, str) and n >= 0:
            out[name] = n
    return out


def _rarest_from(value: Any) -> Optional[RarestFind]:
    if not isinstance(value, dict) or not isinstance(value.get("name"), str):
        return None
    return RarestFind(
        name=value["name"],
        tier_index=_as_int(value.get("tierIndex"), -1),
        points=_as_int(value.get("points")),
    )


def _settings_from(value: Any) -> PlayerSettings:
    if not isinstance(value, dict):
        return PlayerSettings()
    music = value.get("musicOn", True)
    return PlayerSettings(music_on=music if isinstance(music, bool) else True)


# ---------------------- encode ----------------------

def state_to_dict(state: ProgressState, modifiers: ModifierSet, auto_clicker_id: str = AUTO_CLICKER_ID) -> Dict[str, Any]:
    """Flatten progress and active effects into the snapshot mapping."""
    effects: Dict[str, Dict[str, Any]] = {}
    for mod in modifiers:
        if isinstance(mod, StackingCounter):
            continue
        entry: Dict[str, Any] = {"expiresAt": mod.expires_at}
        if isinstance(mod, ForceOutcome):
            entry["usesRemaining"] = mod.uses_remaining
        effects[mod.effect_id] = entry

    rarest = state.rarest_find
    return {
        "username": state.username,
        "totalClicks": state.total_discoveries,
        "points": state.total_points,
        "startTime": state.start_time,
        "timeFrozenUntil": modifiers.time_frozen_until,
        "rarestFind": (
            {"name": rarest.name, "tierIndex": rarest.tier_index, "points": rarest.points} if rarest else None
        ),
        "finds": dict(state.finds_by_tier),
        "unlockedRarities": sorted(state.unlocked_tiers),
        "achievementsUnlocked": sorted(state.achievements_unlocked),
        "autoClickers": modifiers.stack_count(auto_clicker_id),
        "background": state.background,
        "activeEffects": effects,
        "settings": {"musicOn": state.settings.music_on},
    }


def serialize(state: ProgressState, modifiers: ModifierSet, auto_clicker_id: str = AUTO_CLICKER_ID) -> str:
    return json.dumps(state_to_dict(state, modifiers, auto_clicker_id), ensure_ascii=False, sort_keys=True)


# ---------------------- decode ----------------------

def _restore_effects(raw: Any, registry: EffectRegistry, modifiers: ModifierSet) -> None:
    if not isinstance(raw, dict):
        return
    for effect_id, entry in raw.items():
        if not isinstance(entry, dict):
            logger.warning("Dropping malformed effect entry %r", effect_id)
            continue
        expires_at = _as_optional_int(entry.get("expiresAt"))
        uses = _as_optional_int(entry.get("usesRemaining"))
        try:
            definition = registry.get(str(effect_id))
        except UnknownEffect:
            logger.warning("Dropping unknown effect %r from snapshot", effect_id)
            continue
        if expires_at is None and definition.duration_ms is not None:
            # A timed effect without an expiry is treated as already lapsed.
            logger.warning("Effect %r has no expiry; treating it as expired", effect_id)
            expires_at = 0
        modifier = registry.restore(definition.effect_id, expires_at, uses)
        if isinstance(modifier, ForceOutcome) and modifier.uses_remaining <= 0:
            continue
        modifiers.activate(modifier)


def state_from_dict(
    data: Dict[str, Any],
    registry: EffectRegistry,
    now: Optional[int] = None,
    *,
    fallback_username: Optional[str] = None,
    fallback_start_time: Optional[int] = None,
    auto_settings: Optional[AutoClickerSettings] = None,
    auto_clicker_id: str = AUTO_CLICKER_ID,
) -> Tuple[ProgressState, ModifierSet]:
    auto = auto_settings or AutoClickerSettings()
    start_time = _as_optional_int(data.get("startTime"))
    if start_time is None:
        start_time = fallback_start_time if fallback_start_time is not None else now

    state = ProgressState(
        username=_as_str(data.get("username"), fallback_username),
        total_discoveries=max(0, _as_int(data.get("totalClicks"))),
        total_points=max(0, _as_int(data.get("points"))),
        finds_by_tier=_as_count_map(data.get("finds")),
        unlocked_tiers=set(_as_str_list(data.get("unlockedRarities"))),
        rarest_find=_rarest_from(data.get("rarestFind")),
        achievements_unlocked=set(_as_str_list(data.get("achievementsUnlocked"))),
        start_time=start_time,
        background=_as_str(data.get("background"), DEFAULT_BACKGROUND) or DEFAULT_BACKGROUND,
        settings=_settings_from(data.get("settings")),
    )

    modifiers = ModifierSet(registry=registry)
    modifiers.ensure_stack(auto_clicker_id, cap=auto.cap, base_interval_ms=auto.base_interval_ms)
    modifiers.set_stack_count(auto_clicker_id, _as_int(data.get("autoClickers")))
    _restore_effects(data.get("activeEffects"), registry, modifiers)
    # Restoring a FreezeClock sets the freeze; the persisted value wins.
    modifiers.time_frozen_until = max(0, _as_int(data.get("timeFrozenUntil")))
    if now is not None:
        modifiers.purge_expired(now)
    return state, modifiers


def deserialize(
    text: str,
    registry: EffectRegistry,
    now: Optional[int] = None,
    **kwargs: Any,
) -> Tuple[ProgressState, ModifierSet]:
    """Parse snapshot text into a fresh ProgressState and ModifierSet.

    Raises:
        MalformedSnapshot: if the text is not JSON or its top level is not an object.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise MalformedSnapshot(f"Invalid JSON: {exc}") from exc
    except RecursionError as exc:
        raise MalformedSnapshot("Snapshot is nested too deeply") from exc
    if not isinstance(data, dict):
        raise MalformedSnapshot(f"Snapshot must be a JSON object, got {type(data).__name__}")
    return state_from_dict(data, registry, now, **kwargs)


__all__ = ["deserialize", "serialize", "state_from_dict", "state_to_dict"]
