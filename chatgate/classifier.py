from dataclasses import dataclass


@dataclass(frozen=True)
class Category:
    name: str
    icon: str


SERVICES = Category("Services / What We Do", "🎯")
RECRUITING = Category("Recruiting / Hiring Process", "🔍")
INDUSTRIES = Category("Industries / Specialization", "🏢")
PRICING = Category("Pricing / Fees", "💰")
TIMELINE = Category("Timeline / Process Duration", "⏱️")
CONTACT = Category("Contact / Get Started", "📞")
LOCATION = Category("Location / Service Area", "📍")
ABOUT = Category("About / Company Info", "ℹ️")
CANDIDATE_QUALITY = Category("Candidate Quality / Screening", "✅")
JOB_SEEKERS = Category("Job Seekers / Candidates", "👔")
OTHER = Category("Other Questions", "❓")


# First rule with any matching substring wins, so order matters:
# "background check" lands in About (via "background") before Candidate Quality.
CATEGORY_RULES: list[tuple[tuple[str, ...], Category]] = [
    (("what do you do", "services", "what services", "help with", "specialize", "offerings"), SERVICES),
    (("recruiting", "recruitment", "hiring process", "how to hire", "find candidates", "sourcing"), RECRUITING),
    (("industry", "industries", "specialize in", "sector", "field"), INDUSTRIES),
    (("price", "pricing", "cost", "fee", "how much", "charge"), PRICING),
    (("how long", "timeline", "time frame", "duration", "how fast", "quickly"), TIMELINE),
    (("contact", "reach", "get started", "talk to", "speak with", "schedule", "consultation"), CONTACT),
    (("where", "location", "area", "regions", "serve"), LOCATION),
    (("about", "who are", "background", "experience", "history"), ABOUT),
    (("quality", "screening", "vetting", "qualified", "background check"), CANDIDATE_QUALITY),
    (("looking for job", "candidate", "job seeker", "apply", "resume"), JOB_SEEKERS),
]


def classify(question: str) -> Category:
    q = question.lower()
    for needles, category in CATEGORY_RULES:
        if any(n in q for n in needles):
            return category
    return OTHER
