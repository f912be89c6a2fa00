"""
Rule-based risk classification for progress snapshots.
"""

LOW = 'LOW'
MEDIUM = 'MEDIUM'
HIGH = 'HIGH'
CRITICAL = 'CRITICAL'
RISK_LEVELS = (LOW, MEDIUM, HIGH, CRITICAL)


def risk_level_for_score(score):
    """Map an additive severity score to a risk level."""
    if score >= 7:
        return CRITICAL
    elif score >= 4:
        return HIGH
    elif score >= 2:
        return MEDIUM
    return LOW


def classify_risk(attendance_rate, homework_completion_rate, behavior_average, weak_subject_count):
    """
    Score a student's metrics and classify the risk.

    Each metric adds at most one tier to the score. Reasons are appended in a
    fixed order (attendance, homework, behavior, subjects) so the messages are
    deterministic.

    Returns:
        dict: {'risk_level', 'score', 'needs_attention', 'attention_reasons',
               'intervention_required'}
    """
    score = 0
    reasons = []

    if attendance_rate < 60:
        score += 3
        reasons.append('Attendance below 60%')
    elif attendance_rate < 75:
        score += 2
        reasons.append('Attendance below 75%')
    elif attendance_rate < 85:
        score += 1
        reasons.append('Attendance below 85%')

    if homework_completion_rate < 40:
        score += 3
        reasons.append('Homework completion below 40%')
    elif homework_completion_rate < 60:
        score += 2
        reasons.append('Homework completion below 60%')
    elif homework_completion_rate < 75:
        score += 1
        reasons.append('Homework completion below 75%')

    # A zero average means no behavior ratings were recorded
    if 0 < behavior_average < 2:
        score += 2
        reasons.append('Poor behavior rating')
    elif 2 <= behavior_average < 3:
        score += 1
        reasons.append('Below average behavior')

    if weak_subject_count >= 3:
        score += 2
        reasons.append(f'{weak_subject_count} weak subjects')
    elif weak_subject_count >= 1:
        score += 1
        reasons.append(f'{weak_subject_count} weak subject(s)')

    risk_level = risk_level_for_score(score)
    return {
        'risk_level': risk_level,
        'score': score,
        'needs_attention': risk_level != LOW,
        'attention_reasons': reasons,
        'intervention_required': risk_level == CRITICAL,
    }
