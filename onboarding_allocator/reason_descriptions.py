REASON_DESCRIPTIONS = {
    "capacity_exceeded": "The group now holds fewer seats than candidates assigned to it; the latest assignments are flagged first.",
    "no_longer_eligible": "The candidate left the pool or no longer passes the group's filters.",
    "double_booked": "The candidate is also seated by another stored solution.",
}

FILTER_DESCRIPTIONS = {
    "focuses": "Onboarding focus (acting, tech or both).",
    "ageBuckets": "Age range bucket (under18, 18_25, 26_40, over40).",
    "backgrounds": "School, study or work background, compared case-insensitively.",
    "documentStatuses": "State of the required onboarding documents (complete, pending, rejected, missing).",
}
