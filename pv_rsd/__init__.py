"""PV Rapid Shutdown Device Test Platform.

Spreadsheet ingestion, experiment storage, charting and circuit
simulation for photovoltaic rapid shutdown device testing.
"""

__version__ = "1.0.0"
