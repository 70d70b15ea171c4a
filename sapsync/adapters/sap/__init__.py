"""SAP Business One Service Layer client contract."""
