import pytest

from tests.helpers import make_series


@pytest.fixture
def taipei_record():
    return {
        "locationName": "臺北市",
        "weatherElement": [
            make_series("Wx", ["多雲", "晴時多雲", "陰短暫雨"]),
            make_series("PoP", ["20", "10", "60"]),
            make_series("MinT", ["18", "17", "19"]),
            make_series("CI", ["舒適", "稍有寒意", "舒適"]),
            make_series("MaxT", ["25", "24", "22"]),
            make_series("WS", ["<=1", "2", "3"]),
        ],
    }


@pytest.fixture
def cwa_payload(taipei_record):
    kaohsiung = {
        "locationName": "高雄市",
        "weatherElement": [
            make_series("Wx", ["晴", "晴", "多雲"]),
            make_series("PoP", ["0", "0", "10"]),
            make_series("MinT", ["24", "23", "24"]),
            make_series("MaxT", ["31", "30", "30"]),
        ],
    }
    return {
        "success": "true",
        "records": {
            "datasetDescription": "三十六小時天氣預報",
            "location": [taipei_record, kaohsiung],
        },
    }
