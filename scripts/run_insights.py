"""Run the insight engine over the CSV exports and print the result as JSON."""

import json
import logging
import sys

from config.settings import settings
from order_insights.analysis.engine import generate_insights, get_user_recommendations
from order_insights.ingestion.csv_source import CsvRecordSource


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    source = CsvRecordSource(settings.data_directory)
    if len(sys.argv) > 1:
        result = get_user_recommendations(source, sys.argv[1])
    else:
        result = generate_insights(source)
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
