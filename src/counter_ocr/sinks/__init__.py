"""
Sinks Module
============

Destinations for accepted readings.

Components:
    - ReadingSink: Protocol (write / close)
    - CsvReadingSink: Append-only CSV time series
    - MqttReadingSink: MQTT publication with Online/Offline last will
"""

from counter_ocr.sinks.base import ReadingSink
from counter_ocr.sinks.csv_sink import CsvReadingSink
from counter_ocr.sinks.mqtt_sink import MqttReadingSink


__all__ = [
    "ReadingSink",
    "CsvReadingSink",
    "MqttReadingSink",
]
