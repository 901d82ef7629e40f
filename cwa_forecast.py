# cwa_forecast.py
import requests
import pandas as pd
import logging
import os

from dotenv import load_dotenv

# --- Configuration ---
CWA_API_BASE_URL = "https://opendata.cwa.gov.tw/api"
DATASET_ID = "F-C0032-001"  # 36-hour forecast, all 22 cities
FORECAST_API_URL = f"{CWA_API_BASE_URL}/v1/rest/datastore/{DATASET_ID}"
REQUEST_TIMEOUT = 30

# --- Output File Names ---
OUTPUT_CSV_FILE_FORECAST = "taiwan_36h_forecast.csv"
OUTPUT_JSON_FILE_FORECAST = "taiwan_36h_forecast.json"
LOG_FILE_FORECAST = "cwa_forecast_log.txt"
# --- End Output File Names ---

# elementName -> (output field, suffix appended to parameterName)
ELEMENT_FIELDS = {
    'Wx': ('weather', ''),
    'PoP': ('rain', '%'),
    'MinT': ('minTemp', '°C'),
    'MaxT': ('maxTemp', '°C'),
    'CI': ('comfort', ''),
    'WS': ('windSpeed', ''),
}

FORECAST_COLUMNS = ['city', 'updateTime', 'startTime', 'endTime'] + [
    field for field, _ in ELEMENT_FIELDS.values()
]


def setup_logging(log_file=LOG_FILE_FORECAST):
    """File handler (DEBUG) plus console handler (INFO) on the root logger."""
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger


# --- Errors ---
class ForecastError(Exception):
    """Base error for the forecast route, carries the HTTP response it maps to."""

    status_code = 500
    error = "伺服器錯誤"
    default_message = "無法取得天氣資料，請稍後再試"

    def __init__(self, message=None, status_code=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self):
        body = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ConfigurationError(ForecastError):
    error = "伺服器設定錯誤"
    default_message = "請在 .env 檔案中設定 CWA_API_KEY"


class UpstreamEmptyError(ForecastError):
    status_code = 404
    error = "查無資料"
    default_message = "無法取得天氣資料"


class UpstreamFailureError(ForecastError):
    error = "CWA API 錯誤"
    default_message = "無法取得天氣資料"


class MalformedUpstreamError(ForecastError):
    """Upstream payload does not have the expected per-city shape."""


# --- Fetch stage ---
def fetch_forecast_weather(api_key, timeout=REQUEST_TIMEOUT):
    """Fetches the 36-hour forecast for every city from the CWA open data API."""
    if not api_key:
        logging.error("CWA_API_KEY is not configured, skipping upstream call.")
        raise ConfigurationError()

    logging.info(f"Fetching forecast data from: {FORECAST_API_URL}")
    try:
        response = requests.get(
            FORECAST_API_URL,
            params={'Authorization': api_key},
            timeout=timeout,
        )
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        raise _upstream_failure(e) from e
    except requests.exceptions.RequestException as e:
        logging.error(f"Error fetching forecast data: {e}")
        raise UpstreamFailureError(
            ForecastError.default_message, status_code=500
        ) from e

    try:
        data = response.json()
    except ValueError as e:
        logging.error("Failed to decode JSON response from CWA API. Response text was:")
        logging.error(response.text[:500])
        raise UpstreamFailureError(
            ForecastError.default_message, status_code=500
        ) from e

    logging.info("Forecast data fetched successfully.")
    return data


def _upstream_failure(error):
    response = error.response
    if response is None:
        logging.error(f"CWA API error without response: {error}")
        return UpstreamFailureError(status_code=500)

    try:
        details = response.json()
    except ValueError:
        details = {'body': response.text[:500]}

    message = None
    if isinstance(details, dict):
        message = details.get('message')
    logging.error(f"CWA API returned {response.status_code}: {message or response.reason}")
    return UpstreamFailureError(message, status_code=response.status_code, details=details)


# --- Transform stage ---
def build_city_forecast(location, update_time):
    """Flattens one city's element series into a per-timeslot forecast list."""
    city = location.get('locationName', '')
    elements = location.get('weatherElement') or []
    if not elements:
        raise MalformedUpstreamError(f"{city} 沒有任何天氣要素資料")

    base_times = elements[0].get('time') or []
    time_count = len(base_times)
    for element in elements:
        if len(element.get('time') or []) != time_count:
            raise MalformedUpstreamError(
                f"{city} 的 {element.get('elementName')} 時間序列長度不一致"
            )

    forecasts = []
    for i in range(time_count):
        forecast = {
            'startTime': base_times[i].get('startTime', ''),
            'endTime': base_times[i].get('endTime', ''),
        }
        for field, _ in ELEMENT_FIELDS.values():
            forecast[field] = ''

        for element in elements:
            name = element.get('elementName')
            if name not in ELEMENT_FIELDS:
                logging.debug(f"Ignoring unknown element '{name}' for {city}.")
                continue
            field, suffix = ELEMENT_FIELDS[name]
            parameter = element['time'][i].get('parameter')
            if not isinstance(parameter, dict):
                raise MalformedUpstreamError(
                    f"{city} 的 {name} 第 {i + 1} 個時段缺少 parameter 資料"
                )
            forecast[field] = f"{parameter.get('parameterName', '')}{suffix}"

        forecasts.append(forecast)

    return {
        'city': city,
        'updateTime': update_time,
        'forecasts': forecasts,
    }


def transform_locations(locations, update_time):
    """Maps CWA location records to city forecasts, preserving input order."""
    return [build_city_forecast(location, update_time) for location in locations]


def process_weather_data(data):
    """Extracts the location list from a CWA payload and transforms it."""
    records = (data or {}).get('records') or {}
    locations = records.get('location')
    if not locations:
        logging.error("CWA API returned no location records.")
        raise UpstreamEmptyError()

    update_time = records.get('datasetDescription', '')
    logging.info(f"Processing {len(locations)} cities ({update_time}).")
    cities = transform_locations(locations, update_time)
    logging.info("--- Finished Forecast Data Extraction ---")
    return cities


# --- Tabular export ---
def forecasts_to_frame(cities):
    """One row per city and timeslot."""
    rows = []
    for city in cities:
        for forecast in city['forecasts']:
            row = {'city': city['city'], 'updateTime': city['updateTime']}
            row.update(forecast)
            rows.append(row)
    return pd.DataFrame(rows, columns=FORECAST_COLUMNS)


def save_output_files(df, csv_filename, json_filename, save_directory=None):
    """Saves the DataFrame to CSV and JSON files."""
    if df is None:
        logging.warning("No forecast DataFrame to save.")
        return

    if save_directory is None:
        save_directory = os.path.dirname(os.path.abspath(__file__))
    csv_full_path = os.path.join(save_directory, csv_filename)
    json_full_path = os.path.join(save_directory, json_filename)
    logging.info(f"Attempting to save forecast output files in: {save_directory}")

    try:
        df.to_csv(csv_full_path, index=False, encoding='utf-8-sig')
        logging.info(f"Forecast data successfully saved to {csv_full_path}")
    except OSError as e:
        logging.error(f"Error saving forecast data to CSV ({csv_full_path}): {e}")

    try:
        df.to_json(json_full_path, orient='records', force_ascii=False, indent=2)
        logging.info(f"Forecast data successfully saved to {json_full_path}")
    except OSError as e:
        logging.error(f"Error saving forecast data to JSON ({json_full_path}): {e}")


def fetch_and_process_forecast(api_key):
    """Fetches the CWA payload and returns the per-city forecast list."""
    logging.info("Executing fetch_and_process_forecast function...")
    weather_json = fetch_forecast_weather(api_key)
    return process_weather_data(weather_json)


if __name__ == "__main__":
    load_dotenv()
    setup_logging()
    logging.info("Running forecast script directly...")
    try:
        cities = fetch_and_process_forecast(os.environ.get("CWA_API_KEY"))
    except ForecastError as e:
        logging.error(f"Forecast script failed: {e.message}")
    else:
        forecast_df = forecasts_to_frame(cities)
        save_output_files(forecast_df, OUTPUT_CSV_FILE_FORECAST, OUTPUT_JSON_FILE_FORECAST)
        logging.info(f"Forecast files saved. Shape: {forecast_df.shape}")
    logging.info("Forecast script finished direct execution.")
