# ============================================================
# parcel_booking — Passport parcel booking service
# ------------------------------------------------------------
# Tracks a parcel booking from creation through barcode
# issuance, pending confirmation and submission to the DMS.
# ============================================================
