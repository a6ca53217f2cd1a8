from datetime import datetime, timedelta, timezone

from oab_prep.schemas.exam import GENERAL_SUBJECT, OABSubject
from oab_prep.schemas.user import UserProfile
from oab_prep.services.analytics_service import analytics_service
from oab_prep.services.history_filters import filter_details, filter_history, filter_students

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def _student(user_id, name, email):
    return UserProfile(
        id=user_id, name=name, email=email, password="pw", role="student",
        created_at=NOW - timedelta(days=90),
    )


def test_weekly_accuracy_is_question_weighted(make_result):
    history = [
        make_result(5, 10, date=NOW - timedelta(days=1)),
        make_result(8, 10, date=NOW - timedelta(days=2)),
        make_result(2, 10, date=NOW - timedelta(days=3)),
    ]

    stats = analytics_service.weekly_stats(history, now=NOW)

    assert stats.total_exams == 3
    assert stats.total_questions == 30
    assert stats.accuracy == 50


def test_weekly_window_excludes_older_results(make_result):
    history = [
        make_result(10, 10, date=NOW - timedelta(days=6, hours=23)),
        make_result(0, 10, date=NOW - timedelta(days=8)),
    ]

    stats = analytics_service.weekly_stats(history, now=NOW)

    assert stats.total_exams == 1
    assert stats.accuracy == 100
    assert analytics_service.weekly_stats(history[1:], now=NOW) is None


def test_weekly_subject_breakdown_sorted_by_accuracy(make_result):
    result = make_result(
        3, 5, date=NOW,
        subjects=[OABSubject.PENAL, OABSubject.ECA, OABSubject.PENAL, OABSubject.ECA, OABSubject.ECA],
    )

    stats = analytics_service.weekly_stats([result], now=NOW)

    assert [(s.name, s.accuracy, s.count) for s in stats.subjects] == [
        ("Direito Penal", 100, 2),
        ("ECA", 33, 3),
    ]


def test_weekly_stats_are_pure(make_result):
    history = [make_result(3, 7, date=NOW), make_result(1, 3, date=NOW - timedelta(days=2))]

    assert analytics_service.weekly_stats(history, now=NOW) == analytics_service.weekly_stats(history, now=NOW)


def test_mentor_average_is_exam_weighted(make_result):
    # question-weighted would be (1 + 10) / 12 = 92%
    all_results = {
        "s1": [make_result(1, 2, user_id="s1")],
        "s2": [make_result(10, 10, user_id="s2")],
    }
    students = [_student("s1", "Ana", "ana@x.com"), _student("s2", "Bia", "bia@x.com")]

    overview = analytics_service.mentor_overview(students, all_results)

    assert overview.total_students == 2
    assert overview.total_exams == 2
    assert overview.avg_score == 75


def test_top_missed_ranks_raw_error_counts(make_result):
    penal_heavy = make_result(
        0, 4, subjects=[OABSubject.PENAL, OABSubject.PENAL, OABSubject.PENAL, OABSubject.ECA]
    )
    civil = make_result(0, 2, subjects=[OABSubject.CIVIL, OABSubject.CIVIL])
    tax = make_result(0, 1, subjects=[OABSubject.TRIBUTARIO])

    overview = analytics_service.mentor_overview([], {"s1": [penal_heavy, civil], "s2": [tax]})

    assert overview.top_missed == ["Direito Penal", "Direito Civil", "ECA"]


def test_mentor_overview_without_results(make_result):
    overview = analytics_service.mentor_overview([_student("s1", "Ana", "ana@x.com")], {})

    assert overview.avg_score == 0
    assert overview.top_missed == []
    assert overview.students[0].total_exams == 0
    assert overview.students[0].last_exam_date is None


def test_history_sort_newest_and_oldest_are_reversed(make_result):
    history = [make_result(1, 2, date=NOW - timedelta(days=d)) for d in (3, 0, 5, 1)]

    newest = filter_history(history, sort="newest")
    oldest = filter_history(history, sort="oldest")

    assert [r.id for r in newest] == [r.id for r in reversed(oldest)]
    assert newest[0].date == NOW


def test_history_filter_by_subject_and_score(make_result):
    penal = make_result(1, 4, subject=OABSubject.PENAL)
    general = make_result(3, 4, subject=GENERAL_SUBJECT)

    assert filter_history([penal, general], subject="Geral") == [general]
    assert filter_history([penal, general], subject="Direito Penal") == [penal]
    assert filter_history([penal, general], sort="score-high") == [general, penal]
    assert filter_history([penal, general], sort="score-low") == [penal, general]


def test_detail_filter(make_result):
    result = make_result(2, 5)

    assert len(filter_details(result, "errors")) == 3
    assert len(filter_details(result, "success")) == 2
    assert len(filter_details(result, "all")) == 5


def test_student_filters(make_result):
    ana = _student("s1", "Ana Souza", "ana@x.com")
    bia = _student("s2", "Bia Lima", "bia@x.com")
    caio = _student("s3", "Caio", "caio@x.com")
    all_results = {
        "s1": [make_result(8, 10, date=NOW - timedelta(days=2))],
        "s2": [make_result(2, 10, date=NOW - timedelta(days=20))] * 5,
    }
    students = [ana, bia, caio]

    def ids(**filters):
        return [s.id for s in filter_students(students, all_results, now=NOW, **filters)]

    assert ids(search="SOUZA") == ["s1"]
    assert ids(search="BIA@") == ["s2"]
    assert ids(performance="above") == ["s1"]
    assert ids(performance="below") == ["s2"]
    assert ids(exam_count="none") == ["s3"]
    assert ids(exam_count="atleast1") == ["s1", "s2"]
    assert ids(exam_count="atleast5") == ["s2"]
    assert ids(recency="week") == ["s1"]
    assert ids(recency="month") == ["s1", "s2"]
