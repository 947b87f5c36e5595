"""
Alerts app.

Parses inbound monitoring events (Sensu Go) into the Event structure the
notify pipeline consumes.
"""
