from google.cloud import bigquery

from ga4attribution import GA4Attribution, RevenueAnalytics, records_to_dataframe
from ga4attribution.config import get_settings
from ga4attribution.logs import configure_logging

TABLE_ID = "bigquery-public-data.ga4_obfuscated_sample_ecommerce.events_*"
TZ = "America/Los_Angeles"

settings = get_settings()
configure_logging(debug=settings.debug)

client = bigquery.Client()
ga = GA4Attribution(table_id=TABLE_ID, tz=TZ, owned_domains=["shop.googlemerchandisestore.com"], client=client)

records = ga.request_purchase_sessions(start_date="2020-11-01", end_date="2020-11-07", limit=50)
df = records_to_dataframe(records)
print(df[["transaction_id", "gross_revenue", "session_traffic_source", "session_traffic_medium"]].head())

print(ga.request_event_param_keys("purchase"))

# Needs STRIPE_API_KEY and PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET in the environment or .env.
with RevenueAnalytics.from_settings(settings) as analytics:
    overview = analytics.overview()
for line in overview.card.insights + overview.wallet.insights:
    print(line)
