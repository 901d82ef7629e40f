# tests/helpers.py
TIME_SLOTS = [
    ("2026-10-19 18:00:00", "2026-10-20 06:00:00"),
    ("2026-10-20 06:00:00", "2026-10-20 18:00:00"),
    ("2026-10-20 18:00:00", "2026-10-21 06:00:00"),
]


def make_series(name, values):
    return {
        "elementName": name,
        "time": [
            {
                "startTime": start,
                "endTime": end,
                "parameter": {"parameterName": value},
            }
            for (start, end), value in zip(TIME_SLOTS, values)
        ],
    }
