from settings import settings
import psycopg

DDL = '''
CREATE TABLE IF NOT EXISTS monitoring_events (
    id TEXT PRIMARY KEY,
    date DATE NOT NULL,
    category TEXT NOT NULL
        CHECK (category IN ('CLEANING', 'CAREGIVER', 'MEALS', 'SECURITY', 'TELEPHONE')),
    recurrence_label TEXT NOT NULL,
    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_monitoring_events_date ON monitoring_events (date);

CREATE TABLE IF NOT EXISTS monitoring_submissions (
    event_id TEXT NOT NULL REFERENCES monitoring_events (id) ON DELETE CASCADE,
    unit_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING'
        CHECK (status IN ('PENDING', 'COMPLETED', 'DISPENSED')),
    rating SMALLINT CHECK (rating BETWEEN 0 AND 10),
    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
    PRIMARY KEY (event_id, unit_id),
    CONSTRAINT rating_iff_completed CHECK ((status = 'COMPLETED') = (rating IS NOT NULL))
);

CREATE INDEX IF NOT EXISTS idx_monitoring_submissions_unit ON monitoring_submissions (unit_id);
'''

print('Connecting to', settings.db_url)
with psycopg.connect(settings.db_url, connect_timeout=settings.db_connect_timeout) as conn:
    with conn.cursor() as cur:
        cur.execute(DDL)
    conn.commit()
print('DDL applied')
