"""
Recovery milestone database.

Static, per-substance tables consumed by the engines:
  - Milestone catalogs (cigarettes, cannabis, alcohol): time offset since
    the effective quit date, cumulative progress %, affected body systems.
  - Neurotransmitter recovery windows.
  - Body systems and which substances damage them.
  - Mood indicator curves (peak / recovery time per substance).
  - Analytics constants (cost, usage, life-minutes and heartbeats per unit).

Catalogs are ordered by time; progress is cumulative and non-decreasing.
Sources: NHS / CDC smoking cessation timelines, AAC alcohol withdrawal
timeline, Bonnet & Preuss 2017 (cannabis withdrawal).
"""

from dataclasses import asdict, dataclass
from typing import Optional

from app.config import DEFAULT_COST_PER_DAY, SUBSTANCES

# ── Time constants (ms) ──────────────────────────────────────────────

MINUTE = 60 * 1000
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY
MONTH = 30 * DAY
YEAR = 365 * DAY


@dataclass(frozen=True)
class Milestone:
    id: str
    time: int
    label: str
    category: str
    physical: str
    psychological: Optional[str]
    systems: tuple
    progress: float
    disease_risk: Optional[str] = None
    risk_level: Optional[str] = None
    warning: Optional[str] = None
    organ_progress: Optional[str] = None
    brain_progress: Optional[str] = None
    neurotransmitter: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["systems"] = list(self.systems)
        return {k: v for k, v in d.items() if v is not None}


# ── Cigarettes ───────────────────────────────────────────────────────

CIGARETTE_MILESTONES = (
    # Immediate (minutes to hours)
    Milestone("cig_20min", 20 * MINUTE, "20 Minutes", "immediate",
              "Heart rate drops to normal; Blood pressure starts decreasing",
              None, ("heart",), 1),
    Milestone("cig_1hr", 1 * HOUR, "1 Hour", "immediate",
              "Circulation begins improving; Bronchial fibers start moving again",
              None, ("lungs", "blood"), 2),
    Milestone("cig_8hr", 8 * HOUR, "8 Hours", "immediate",
              "Carbon monoxide drops 50%; Oxygen levels rise significantly",
              None, ("blood", "brain"), 3),
    Milestone("cig_12hr", 12 * HOUR, "12 Hours", "immediate",
              "CO levels return to normal; Full oxygen capacity restored",
              None, ("blood",), 5),
    # Short-term (days)
    Milestone("cig_24hr", 24 * HOUR, "24 Hours", "days",
              "Heart attack risk decreases; Nicotine nearly eliminated; Veins/arteries relax",
              "Withdrawal begins: anxiety, irritability", ("heart", "blood"), 7),
    Milestone("cig_48hr", 48 * HOUR, "48 Hours", "days",
              "Nerve endings regrow; Taste/smell senses sharpen",
              "Cravings intensify; restlessness peaks", ("nerves", "senses"), 10),
    Milestone("cig_72hr", 72 * HOUR, "72 Hours", "days",
              "Bronchial tubes fully relax; Lung capacity increases; Energy improves",
              "Peak withdrawal: irritability, anxiety, depression, headaches", ("lungs",), 12),
    # First weeks
    Milestone("cig_week1", 1 * WEEK, "Week 1", "weeks",
              "Cilia regain function; Mucus clears; Breathing easier",
              "Mental fog worst; difficulty concentrating", ("lungs",), 15),
    Milestone("cig_week2", 2 * WEEK, "Week 2", "weeks",
              "Circulation significantly improved; Walking easier",
              "Symptoms starting to fade; mood stabilizing", ("blood", "heart"), 20),
    Milestone("cig_week3", 3 * WEEK, "Week 3", "weeks",
              "Lung function +30%; Physical activity easier",
              "Psychological addiction confrontation phase", ("lungs",), 25),
    Milestone("cig_week4", 4 * WEEK, "Week 4", "weeks",
              "Most physical symptoms resolved",
              "Brain fog clears; thinking clearer", ("brain",), 30),
    # Months
    Milestone("cig_1mo", 1 * MONTH, "1 Month", "months",
              "Lung fibers regrow; Sinus congestion decreases; Infection risk drops",
              "Mood improvements begin", ("lungs", "immune"), 35),
    Milestone("cig_3mo", 3 * MONTH, "3 Months", "months",
              "Circulation fully improved; Heart function enhanced",
              "Dopamine normalizes; reward system heals", ("heart", "brain"), 45),
    Milestone("cig_6mo", 6 * MONTH, "6 Months", "months",
              "Airways less inflamed; Coughing/phlegm rare; Handles stress better",
              "Anxiety/depression lower than when smoking", ("lungs", "brain"), 55),
    Milestone("cig_9mo", 9 * MONTH, "9 Months", "months",
              "Lung function +10%; Cilia fully restored",
              "Significant quality of life improvement", ("lungs",), 65),
    # Years
    Milestone("cig_1yr", 1 * YEAR, "1 Year", "years",
              "Heart disease risk halved; Cilia function like non-smoker",
              "Full psychological recovery for most", ("heart", "lungs"), 75,
              disease_risk="Coronary heart disease ↓50%"),
    Milestone("cig_5yr", 5 * YEAR, "5 Years", "years",
              "Stroke risk equals non-smoker; Blood vessels widened",
              None, ("brain", "blood"), 85,
              disease_risk="Mouth/throat/esophageal/bladder cancer ↓50%"),
    Milestone("cig_10yr", 10 * YEAR, "10 Years", "years",
              "Lung function nearly normal",
              None, ("lungs",), 95,
              disease_risk="Lung cancer risk halved; Pancreas/larynx cancer ↓"),
    Milestone("cig_15yr", 15 * YEAR, "15 Years", "years",
              "Cardiovascular health equals non-smoker",
              None, ("heart",), 100,
              disease_risk="Heart attack risk same as never-smoker"),
)


# ── Cannabis ─────────────────────────────────────────────────────────

CANNABIS_MILESTONES = (
    # First week (day by day)
    Milestone("can_day1", 1 * DAY, "Day 1", "days",
              "Headaches begin; Appetite decreases",
              "Irritability starts; Mild anxiety", ("brain", "digestive"), 3),
    Milestone("can_day2", 2 * DAY, "Day 2", "days",
              "Sweating increases; Stomach discomfort",
              "Restlessness; Cravings intensify", ("skin", "digestive"), 5),
    Milestone("can_day3", 3 * DAY, "Day 3", "days",
              "Physical symptoms peak: Chills, tremors, nausea",
              "Psychological peak: Anger, depression, mood swings", ("brain", "nerves"), 8),
    Milestone("can_day4", 4 * DAY, "Day 4", "days",
              "Physical symptoms begin tapering; CB-1 receptors healing",
              "Depression may intensify as brain adjusts", ("brain",), 12),
    Milestone("can_day5_6", 6 * DAY, "Day 5-6", "days",
              "Shakiness/chills decreasing",
              "Sleep disturbances begin; Strange dreams", ("nerves",), 15),
    Milestone("can_day7", 7 * DAY, "Day 7", "days",
              "Most physical discomfort subsiding",
              "Irritability persists; Anxiety fluctuates", ("brain",), 18),
    # Second week
    Milestone("can_day8_10", 10 * DAY, "Day 8-10", "weeks",
              "Energy slowly returning; Appetite improving",
              "Mood stabilizing; Anger diminishing", ("digestive", "brain"), 22),
    Milestone("can_day11_14", 14 * DAY, "Day 11-14", "weeks",
              "Physical symptoms largely resolved",
              "Sleep issues persist; Mental fog beginning to clear", ("brain",), 28),
    # Weeks 3-4
    Milestone("can_week3", 3 * WEEK, "Week 3", "weeks",
              "Body detox continuing; THC still excreting",
              "Emotional stability improving; Fatigue persists", ("liver", "brain"), 35),
    Milestone("can_week4", 4 * WEEK, "Week 4", "weeks",
              "CB-1 receptors fully normalized",
              "Memory function improving; Focus better", ("brain",), 42),
    # Months
    Milestone("can_30days", 30 * DAY, "30 Days", "months",
              "THC fully excreted; Lungs healing",
              "Acute withdrawal resolved; Some anxiety may linger", ("lungs", "brain"), 50),
    Milestone("can_45days", 45 * DAY, "45 Days", "months",
              "Sleep patterns normalizing",
              "Insomnia resolves for most; Strange dreams end", ("brain",), 58),
    Milestone("can_2mo", 2 * MONTH, "2 Months", "months",
              "Improved breathing; Better physical stamina",
              "Mental clarity significantly improved", ("lungs", "brain"), 68),
    Milestone("can_3mo", 3 * MONTH, "3 Months", "months",
              "Cardiovascular health stabilizing; Immune stronger",
              "Cognitive function returns; Concentration normal",
              ("heart", "immune", "brain"), 80),
    Milestone("can_6mo", 6 * MONTH, "6 Months", "months",
              "Lung function substantially improved",
              "Emotional resilience strong; Depression/anxiety resolved", ("lungs", "brain"), 92),
    Milestone("can_1yr", 1 * YEAR, "1 Year", "years",
              "Full physical recovery for most",
              "Optimal mental clarity; Long-term memory restored",
              ("brain", "lungs", "heart"), 100),
)


# ── Alcohol ──────────────────────────────────────────────────────────

ALCOHOL_MILESTONES = (
    # Acute withdrawal (hour by hour)
    Milestone("alc_6hr", 6 * HOUR, "6 Hours", "hours",
              "Early symptoms may begin",
              "Anxiety starting", ("brain",), 1, risk_level="low"),
    Milestone("alc_12hr", 12 * HOUR, "12 Hours", "hours",
              "Headaches; Sweating; Tremors; Nausea; Rapid heart rate",
              "Anxiety; Insomnia begins", ("heart", "nerves"), 3, risk_level="moderate"),
    Milestone("alc_24hr", 24 * HOUR, "24 Hours", "hours",
              "Symptoms intensify: Vomiting; Increased BP",
              "Agitation; Paranoia; Nightmares; 25% may hallucinate",
              ("brain", "heart"), 5, risk_level="high"),
    Milestone("alc_48hr", 48 * HOUR, "48 Hours", "hours",
              "Peak symptoms: Fever; Irregular heartbeat",
              "Confusion; Severe anxiety; Depression", ("heart", "brain"), 8,
              risk_level="critical", warning="Highest seizure risk"),
    Milestone("alc_72hr", 72 * HOUR, "72 Hours", "hours",
              "Symptoms peak or begin subsiding",
              "Delirium Tremens risk (5-15%): Severe confusion, hallucinations",
              ("brain",), 10, risk_level="critical", warning="DT risk period"),
    # First week (day by day)
    Milestone("alc_day4", 4 * DAY, "Day 4", "days",
              "Shaking decreases; Heart rate stabilizing",
              "Anxiety still high but manageable", ("heart", "liver"), 15,
              organ_progress="Liver beginning detox"),
    Milestone("alc_day5", 5 * DAY, "Day 5", "days",
              "Nausea subsiding; Appetite returning",
              "Sleep slightly improving", ("digestive", "liver"), 18,
              organ_progress="Liver enzymes dropping"),
    Milestone("alc_day6", 6 * DAY, "Day 6", "days",
              "Energy slowly returning; Sweating decreases",
              "Mood swings; Irritability", ("skin",), 20,
              organ_progress="Hydration improving"),
    Milestone("alc_day7", 7 * DAY, "Day 7", "days",
              "Most physical symptoms resolved",
              "Depression emerging; Cravings strong", ("liver",), 25,
              organ_progress="Liver enzymes normalizing"),
    # Weeks 2-4
    Milestone("alc_week2", 2 * WEEK, "Week 2", "weeks",
              "Heart rate/BP normalized; Skin improving",
              "Brain fog clearing; Sleep better", ("heart", "skin", "brain"), 32,
              brain_progress="Grey matter recovery begins"),
    Milestone("alc_week3", 3 * WEEK, "Week 3", "weeks",
              "Digestion improving; Weight stabilizing",
              "Dopamine crash: emptiness, low motivation", ("digestive", "brain"), 38,
              brain_progress="Receptors healing"),
    Milestone("alc_week4", 4 * WEEK, "Week 4", "weeks",
              "Liver inflammation resolving; Clearer skin/hair",
              "Memory/concentration improving", ("liver", "skin", "brain"), 45,
              brain_progress="Neural pathways healing"),
    # Months
    Milestone("alc_1mo", 1 * MONTH, "1 Month", "months",
              "Fatty liver reversing; Enzyme levels normal",
              "Mental clarity emerging; Emotional stability beginning", ("liver", "brain"), 50),
    Milestone("alc_6wk", 6 * WEEK, "6 Weeks", "months",
              "Fat deposits significantly reduced",
              "Focus improving; Fewer cravings", ("liver", "brain"), 55),
    Milestone("alc_2mo", 2 * MONTH, "2 Months", "months",
              "Liver regenerating damaged cells",
              "Working memory improved", ("liver", "brain"), 62),
    Milestone("alc_3mo", 3 * MONTH, "3 Months", "months",
              "Liver function greatly improved",
              "Dopamine stabilized; Serotonin normalizing; Mood stable",
              ("liver", "brain"), 72, neurotransmitter="dopamine"),
    Milestone("alc_6mo", 6 * MONTH, "6 Months", "months",
              "Liver healing significant; Energy high",
              "Grey matter volume increasing; Problem-solving improved",
              ("liver", "brain"), 85, neurotransmitter="serotonin"),
    Milestone("alc_1yr", 1 * YEAR, "1 Year", "years",
              "Full liver recovery (if no cirrhosis)",
              "Full brain chemistry balance; Natural joy returns",
              ("liver", "brain", "heart"), 100),
)


# ── Neurotransmitter recovery ────────────────────────────────────────

NEUROTRANSMITTER_RECOVERY = {
    "gaba": {
        "name": "GABA",
        "full_name": "Gamma-Aminobutyric Acid",
        "timeline": "1-4 weeks",
        "time_ms": 4 * WEEK,
        "effect": "Anxiety reduces; Sleep normalizes",
        "affected_by": ("alcohol",),
    },
    "dopamine": {
        "name": "Dopamine",
        "full_name": "Dopamine Receptors",
        "timeline": "2 weeks -> 90 days",
        "time_ms": 90 * DAY,
        "effect": "Pleasure response returns; Motivation rebuilds",
        "affected_by": ("alcohol", "cannabis", "cigarettes"),
    },
    "serotonin": {
        "name": "Serotonin",
        "full_name": "Serotonin Levels",
        "timeline": "3-6 months",
        "time_ms": 6 * MONTH,
        "effect": "Depression lifts; Mood regulation restored",
        "affected_by": ("alcohol",),
    },
    "grey_matter": {
        "name": "Grey Matter",
        "full_name": "Grey Matter Volume",
        "timeline": "3 months -> 1+ year",
        "time_ms": 1 * YEAR,
        "effect": "Memory improves; Learning ability returns",
        "affected_by": ("alcohol",),
    },
    "cortical_thickness": {
        "name": "Cortical Thickness",
        "full_name": "Cortical Thickness",
        "timeline": "6-7 months",
        "time_ms": 7 * MONTH,
        "effect": "Approaches non-drinker levels",
        "affected_by": ("alcohol",),
    },
    "cb1_receptors": {
        "name": "CB-1 Receptors",
        "full_name": "Cannabinoid 1 Receptors",
        "timeline": "4 weeks",
        "time_ms": 4 * WEEK,
        "effect": "Normal brain signaling restored",
        "affected_by": ("cannabis",),
    },
}


# ── Body systems ─────────────────────────────────────────────────────

BODY_SYSTEMS = {
    "heart": {"name": "Heart", "affected_by": ("cigarettes", "alcohol")},
    "lungs": {"name": "Lungs", "affected_by": ("cigarettes", "cannabis")},
    "brain": {"name": "Brain", "affected_by": ("cigarettes", "cannabis", "alcohol")},
    "liver": {"name": "Liver", "affected_by": ("alcohol",)},
    "blood": {"name": "Blood", "affected_by": ("cigarettes",)},
    "nerves": {"name": "Nerves", "affected_by": ("cigarettes", "cannabis")},
    "immune": {"name": "Immune System", "affected_by": ("cigarettes", "cannabis", "alcohol")},
    "digestive": {"name": "Digestive System", "affected_by": ("cannabis", "alcohol")},
    "skin": {"name": "Skin", "affected_by": ("alcohol",)},
    "senses": {"name": "Taste & Smell", "affected_by": ("cigarettes",)},
}


# ── Mood indicators ──────────────────────────────────────────────────
# Severity rises to 100 at the peak time, then falls to 0 at recovery time.

MOOD_INDICATORS = {
    "anxiety": {
        "name": "Anxiety",
        "peak_times": {"cigarettes": 3 * DAY, "cannabis": 3 * DAY, "alcohol": 48 * HOUR},
        "recovery_time": {"cigarettes": 4 * WEEK, "cannabis": 3 * WEEK, "alcohol": 3 * MONTH},
    },
    "depression": {
        "name": "Depression",
        "peak_times": {"cigarettes": 1 * WEEK, "cannabis": 1 * WEEK, "alcohol": 3 * WEEK},
        "recovery_time": {"cigarettes": 3 * MONTH, "cannabis": 3 * MONTH, "alcohol": 6 * MONTH},
    },
    "irritability": {
        "name": "Irritability",
        "peak_times": {"cigarettes": 3 * DAY, "cannabis": 3 * DAY, "alcohol": 72 * HOUR},
        "recovery_time": {"cigarettes": 2 * WEEK, "cannabis": 2 * WEEK, "alcohol": 1 * MONTH},
    },
    "focus": {
        "name": "Focus",
        "peak_times": {"cigarettes": 1 * WEEK, "cannabis": 1 * WEEK, "alcohol": 2 * WEEK},
        "recovery_time": {"cigarettes": 4 * WEEK, "cannabis": 1 * MONTH, "alcohol": 3 * MONTH},
    },
    "cravings": {
        "name": "Cravings",
        "peak_times": {"cigarettes": 3 * DAY, "cannabis": 3 * DAY, "alcohol": 1 * WEEK},
        "recovery_time": {"cigarettes": 3 * MONTH, "cannabis": 1 * MONTH, "alcohol": 3 * MONTH},
    },
}


# ── Analytics constants ──────────────────────────────────────────────

ANALYTICS_CONFIG = {
    "cigarettes": {
        "cost_per_day": DEFAULT_COST_PER_DAY["cigarettes"],  # premium pack
        "usage_per_day": 20,            # cigarettes per pack
        "life_minutes_per_unit": 11,    # minutes of life lost per cigarette
        "heartbeats_per_unit": 1500,    # extra beats from the heart-rate spike
    },
    "cannabis": {
        "cost_per_day": DEFAULT_COST_PER_DAY["cannabis"],
        "usage_per_day": 1,             # joints / bowls
        "life_minutes_per_unit": 0,     # no consensus; cognitive impact only
        "heartbeats_per_unit": 1000,
    },
    "alcohol": {
        "cost_per_day": DEFAULT_COST_PER_DAY["alcohol"],
        "usage_per_day": 2,             # standard drinks
        "life_minutes_per_unit": 15,
        "heartbeats_per_unit": 2000,    # chronic drinking raises resting HR
    },
}


_CATALOGS = {
    "cigarettes": CIGARETTE_MILESTONES,
    "cannabis": CANNABIS_MILESTONES,
    "alcohol": ALCOHOL_MILESTONES,
}


def get_milestones(substance: str) -> tuple:
    """Ordered milestone catalog for a substance; empty for unknown keys."""
    return _CATALOGS.get(substance, ())


def get_all_milestones_sorted() -> list[dict]:
    """Every milestone of every substance, tagged with its substance, by time."""
    merged = []
    for substance in SUBSTANCES:
        for m in get_milestones(substance):
            merged.append({**m.to_dict(), "substance": substance})
    return sorted(merged, key=lambda m: m["time"])


def _validate_catalog(substance: str, milestones: tuple) -> None:
    last_time = -1
    last_progress = 0.0
    for m in milestones:
        if m.time < last_time:
            raise ValueError(f"{substance}: milestone {m.id} out of time order")
        if not last_progress <= m.progress <= 100:
            raise ValueError(f"{substance}: milestone {m.id} progress not monotonic in [0, 100]")
        last_time = m.time
        last_progress = m.progress


for _substance, _milestones in _CATALOGS.items():
    _validate_catalog(_substance, _milestones)
