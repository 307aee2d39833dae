# utils/enrich.py
from __future__ import annotations

import re

from typing import Dict, List, Optional

# Grouped keyword/phrase patterns. Each match is reported lower-cased, so the
# alternatives should be spelled the way they are usually written.
SKILL_GROUPS: Dict[str, List[str]] = {
    "languages": [
        r"python",
        r"java",
        r"javascript",
        r"typescript",
        r"c\+\+",
        r"c#",
        r"golang",
        r"rust",
        r"ruby",
        r"php",
        r"kotlin",
        r"swift",
        r"scala",
        r"matlab",
        r"bash",
    ],
    "frameworks": [
        r"react",
        r"angular",
        r"vue(?:\.js)?",
        r"next\.js",
        r"node(?:\.js)?",
        r"django",
        r"flask",
        r"fastapi",
        r"spring(?: boot)?",
        r"\.net",
        r"rails",
        r"laravel",
    ],
    "markup": [r"html5?", r"css3?", r"sass", r"tailwind", r"bootstrap"],
    "data_stores": [
        r"sql",
        r"mysql",
        r"postgresql",
        r"postgres",
        r"mongodb",
        r"redis",
        r"elasticsearch",
        r"cassandra",
        r"dynamodb",
        r"oracle",
        r"snowflake",
        r"bigquery",
    ],
    "cloud_devops": [
        r"aws",
        r"azure",
        r"gcp",
        r"google cloud",
        r"docker",
        r"kubernetes",
        r"terraform",
        r"ansible",
        r"jenkins",
        r"ci/cd",
        r"git",
        r"linux",
    ],
    "data_science": [
        r"machine learning",
        r"deep learning",
        r"data science",
        r"data analysis",
        r"nlp",
        r"computer vision",
        r"tensorflow",
        r"pytorch",
        r"scikit-learn",
        r"pandas",
        r"numpy",
        r"spark",
        r"hadoop",
        r"tableau",
        r"power bi",
        r"statistics",
    ],
    "process": [
        r"agile",
        r"scrum",
        r"kanban",
        r"devops",
        r"tdd",
        r"microservices",
        r"rest(?:ful)? apis?",
        r"graphql",
        r"project management",
    ],
    "soft_skills": [
        r"communication",
        r"leadership",
        r"teamwork",
        r"problem[- ]solving",
        r"time management",
        r"critical thinking",
        r"collaboration",
        r"stakeholder management",
    ],
}

# Word-ish boundaries that also work around symbols such as "c++" or ".net".
_PATTERNS = [
    re.compile(rf"(?<![\w+#.])(?:{'|'.join(alts)})(?![\w+#])", re.I)
    for alts in SKILL_GROUPS.values()
]


def extract_skills(*texts: Optional[str]) -> List[str]:
    """
    Return the deduplicated, lower-cased skills mentioned in `texts`.

    Order follows first appearance across the group scan, which keeps the
    output stable for identical input.
    """
    blob = "\n".join(t for t in texts if t)
    if not blob:
        return []
    seen: Dict[str, None] = {}
    for rx in _PATTERNS:
        for m in rx.finditer(blob):
            seen.setdefault(re.sub(r"\s+", " ", m.group(0).lower()), None)
    return list(seen)
