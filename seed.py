"""
Initial college cutoff data.

Loaded once at startup so the cutoffs page has content before any admin
entry. Calling `seed_college_cutoffs` twice inserts every row twice.
"""

import logging

from prompts import WELCOME_MESSAGE
from schemas import CollegeCutoffCreate

logger = logging.getLogger(__name__)

SEED_COLLEGE_CUTOFFS = (
    CollegeCutoffCreate(university="L.D. College of Engineering", program="Computer Engineering", country="India",
                        gpa="92%", test_scores="GUJCET 110+", acceptance_rate="8%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="L.D. College of Engineering", program="Mechanical Engineering", country="India",
                        gpa="85%", test_scores="GUJCET 95+", acceptance_rate="15%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="Nirma University", program="Computer Engineering", country="India",
                        gpa="90%", test_scores="GUJCET 105+", acceptance_rate="10%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="Nirma University", program="Business", country="India",
                        gpa="80%", test_scores="CAT 85 percentile", acceptance_rate="12%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="DA-IICT", program="Information Technology", country="India",
                        gpa="88%", test_scores="JEE Main 95 percentile", acceptance_rate="9%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="B.J. Medical College", program="Medicine", country="India",
                        gpa="95%", test_scores="NEET 620+", acceptance_rate="3%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="Massachusetts Institute of Technology", program="Computer Science", country="USA",
                        gpa="3.9", test_scores="SAT 1550+", acceptance_rate="4%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="Stanford University", program="Engineering", country="USA",
                        gpa="3.9", test_scores="SAT 1500+", acceptance_rate="4%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="Harvard University", program="Medicine", country="USA",
                        gpa="3.9", test_scores="MCAT 520+", acceptance_rate="3%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="University of Toronto", program="Computer Science", country="Canada",
                        gpa="3.7", test_scores="IELTS 6.5", acceptance_rate="43%", academic_year="2023-2024"),
    CollegeCutoffCreate(university="University of Oxford", program="Business", country="UK",
                        gpa="3.7", test_scores="GMAT 690+", acceptance_rate="17%", academic_year="2022-2023"),
    CollegeCutoffCreate(university="University of Melbourne", program="Engineering", country="Australia",
                        gpa="3.5", test_scores="IELTS 6.5", acceptance_rate="70%", academic_year="2022-2023"),
)


async def seed_welcome_message(storage):
    """Store the assistant greeting as a global message (no owner), shown in every history."""
    return await storage.create_chat_message(
        {"user_id": None, "content": WELCOME_MESSAGE, "is_user_message": False}
    )


async def seed_college_cutoffs(storage) -> int:
    """Insert every seed row through the storage interface. Returns the number inserted."""
    for cutoff in SEED_COLLEGE_CUTOFFS:
        await storage.create_college_cutoff(cutoff)
    logger.info(f"[SEED] Loaded {len(SEED_COLLEGE_CUTOFFS)} college cutoffs")
    return len(SEED_COLLEGE_CUTOFFS)


async def seed_initial_data(storage) -> bool:
    """
    Seed a fresh store with cutoffs and the welcome message.

    Skipped when cutoffs already exist, which only happens with a database
    that survived a restart. Returns True if seeding ran.
    """
    existing = await storage.count_college_cutoffs()
    if existing > 0:
        logger.info(f"[SEED] {existing} college cutoffs already present, skipping seed")
        return False
    await seed_college_cutoffs(storage)
    await seed_welcome_message(storage)
    return True
