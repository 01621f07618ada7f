"""Stage classification logic — pure functions, no Redis dependency.

Used by both the quest service fallback path and the FastAPI server.
"""

from __future__ import annotations

from stepout.models.profile import Profile
from stepout.models.quest import Stage

# Case-sensitive substrings in the self-efficacy answer meaning "high"/"good"
HIGH_EFFICACY_MARKERS = ("높", "좋")

ANXIETY_THRESHOLD = 4
ACTION_OUTINGS_THRESHOLD = 3         # strictly greater than
MAINTENANCE_OUTINGS_THRESHOLD = 5    # greater than or equal

STAGE_REASONS = {
    Stage.PRECONTEMPLATION: "외출 시도 경험이 없고 불안감이 높아 변화에 대한 관심이 낮은 상태입니다.",
    Stage.CONTEMPLATION: "외출을 시도했지만 실패 경험이 있어 변화의 필요성을 인식하고 있는 상태입니다.",
    Stage.PREPARATION: "최근 소수의 외출 경험이 있어 변화를 위한 준비를 하고 있는 상태입니다.",
    Stage.ACTION: "정기적인 외출이 가능해 실제 행동 변화를 실천하고 있는 상태입니다.",
    Stage.MAINTENANCE: "꾸준한 외출과 높은 자기효능감으로 긍정적 변화를 유지하고 있는 상태입니다.",
}


def has_high_self_efficacy(profile: Profile) -> bool:
    text = profile.mental_state.self_efficacy or ""
    return any(marker in text for marker in HIGH_EFFICACY_MARKERS)


def classify(profile: Profile) -> Stage:
    """Map a profile to a behavior-change stage. First matching rule wins.

    The outing rules overlap: anyone with >= 5 outings already satisfies the
    action rule, so the maintenance rule is only reachable if the action
    threshold changes. Order is kept as-is.
    """
    past = profile.past_experiences
    mental = profile.mental_state
    outings = profile.hikikomori_status.outings_last_month

    if not past.tried_to_go_out and mental.anxiety_level >= ANXIETY_THRESHOLD:
        return Stage.PRECONTEMPLATION

    if past.tried_to_go_out and len(past.fail_reasons) > 0:
        return Stage.CONTEMPLATION

    if outings > ACTION_OUTINGS_THRESHOLD:
        return Stage.ACTION

    if outings >= MAINTENANCE_OUTINGS_THRESHOLD and has_high_self_efficacy(profile):
        return Stage.MAINTENANCE

    return Stage.PREPARATION


def get_stage_reason(profile: Profile, stage: Stage) -> str:
    """Static one-sentence justification for a stage (profile values unused)."""
    return STAGE_REASONS[stage]
