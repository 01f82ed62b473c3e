"""
Scan pipeline.

Modules
-------
scan_cycle : ``ScanCycleRunner`` (serialized, cancellable cycles) and
             ``ScanResult``.
"""
