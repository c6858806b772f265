"""Standard lesson structures for the supported Bible study curricula.

Each curriculum id maps to a fixed, ordered tuple of lessons. Churches can
also run custom studies, which start with no lessons.
"""

from typing import List, NamedTuple, Optional


class CurriculumLesson(NamedTuple):
    number: int
    title: str
    description: Optional[str] = None


CURRICULUMS = {
    'search-for-truth': (
        CurriculumLesson(1, 'The Bible', 'Understanding the Word of God'),
        CurriculumLesson(2, 'God', 'The nature and character of God'),
        CurriculumLesson(3, 'Man', 'The creation and fall of mankind'),
        CurriculumLesson(4, 'Sin', 'Understanding sin and its consequences'),
        CurriculumLesson(5, 'Jesus Christ', 'The deity and humanity of Christ'),
        CurriculumLesson(6, 'Salvation', "God's plan of redemption"),
        CurriculumLesson(7, 'Repentance', 'Turning from sin to God'),
        CurriculumLesson(8, 'Baptism', "Water baptism in Jesus' name"),
        CurriculumLesson(9, 'The Holy Ghost', 'The gift of the Holy Spirit'),
        CurriculumLesson(10, 'The Church', 'The body of Christ'),
        CurriculumLesson(11, 'Holiness', 'Living a separated life'),
        CurriculumLesson(12, 'The Second Coming', 'The return of Jesus Christ'),
    ),
    'exploring-gods-word': (
        CurriculumLesson(1, 'The Word of God', 'Authority of Scripture'),
        CurriculumLesson(2, 'One God', 'The Oneness of God'),
        CurriculumLesson(3, 'The Name of Jesus', 'Power in the Name'),
        CurriculumLesson(4, 'New Birth', 'Born of water and Spirit'),
        CurriculumLesson(5, 'Repentance', 'The first step'),
        CurriculumLesson(6, 'Water Baptism', 'Baptized into Christ'),
        CurriculumLesson(7, 'Holy Spirit Baptism', 'Receiving the gift'),
        CurriculumLesson(8, 'Living for God', 'The Christian walk'),
    ),
    'first-principles': (
        CurriculumLesson(1, 'The Bible', 'Our guide for life'),
        CurriculumLesson(2, 'God', 'Who is God?'),
        CurriculumLesson(3, 'Jesus', 'God manifest in flesh'),
        CurriculumLesson(4, 'Sin', 'The problem of sin'),
        CurriculumLesson(5, 'Salvation', 'The solution'),
        CurriculumLesson(6, 'Repentance', 'Changing direction'),
        CurriculumLesson(7, 'Baptism', "Following Jesus' example"),
        CurriculumLesson(8, 'Holy Ghost', 'Power to live'),
        CurriculumLesson(9, 'Church', 'The family of God'),
        CurriculumLesson(10, 'Christian Living', 'Walking in the light'),
    ),
    'custom': (),
}


def get_curriculum_lessons(curriculum: str) -> List[CurriculumLesson]:
    """Return the ordered lessons for `curriculum`.

    Unknown identifiers are treated as custom curricula and yield an
    empty list.
    """
    return list(CURRICULUMS.get(curriculum, ()))


def get_available_curriculums() -> List[str]:
    """Return every curriculum id in the catalog."""
    return list(CURRICULUMS)


def is_catalog_curriculum(curriculum: str) -> bool:
    return curriculum in CURRICULUMS
