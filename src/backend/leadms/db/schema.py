from leadms.db.postgres import get_cursor
from leadms.utils.logger import get_logger

logger = get_logger(__name__)


def init_crm_tables() -> None:
    sql = """
    CREATE EXTENSION IF NOT EXISTS pgcrypto;

    CREATE TABLE IF NOT EXISTS leads (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id TEXT,
        business_name TEXT NOT NULL CHECK (btrim(business_name) <> ''),
        contact_person TEXT NOT NULL CHECK (btrim(contact_person) <> ''),
        phone TEXT NOT NULL CHECK (btrim(phone) <> ''),
        email TEXT,
        address TEXT,
        city TEXT,
        lead_status TEXT NOT NULL CHECK (lead_status IN ('Hot', 'Warm', 'Cold')),
        stage TEXT NOT NULL CHECK (stage IN ('Contacted', 'Requirements Received', 'Follow-ups', 'Closed/Won')),
        next_followup_date TIMESTAMPTZ,
        interested_services TEXT[],
        notes_first_call TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        created_by TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS followup_conversations (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        lead_id UUID NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
        created_by TEXT NOT NULL,
        conversation_text TEXT NOT NULL,
        conversation_date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS attachments (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        lead_id UUID NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
        file_name TEXT NOT NULL,
        file_url TEXT NOT NULL,
        file_type TEXT,
        uploaded_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        uploaded_by TEXT NOT NULL
    );

    CREATE OR REPLACE FUNCTION update_updated_at_column()
    RETURNS TRIGGER AS $$
    BEGIN
        NEW.updated_at = NOW();
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql;

    DROP TRIGGER IF EXISTS update_leads_updated_at ON leads;
    CREATE TRIGGER update_leads_updated_at
        BEFORE UPDATE ON leads
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column();

    DROP TRIGGER IF EXISTS update_followup_conversations_updated_at ON followup_conversations;
    CREATE TRIGGER update_followup_conversations_updated_at
        BEFORE UPDATE ON followup_conversations
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column();

    CREATE INDEX IF NOT EXISTS idx_leads_stage ON leads (stage);
    CREATE INDEX IF NOT EXISTS idx_leads_lead_status ON leads (lead_status);
    CREATE INDEX IF NOT EXISTS idx_leads_city ON leads (city);
    CREATE INDEX IF NOT EXISTS idx_leads_next_followup ON leads (next_followup_date);
    CREATE INDEX IF NOT EXISTS idx_followup_conversations_lead
        ON followup_conversations (lead_id, conversation_date DESC);
    CREATE INDEX IF NOT EXISTS idx_attachments_lead_id ON attachments (lead_id);
    """

    with get_cursor() as (_, cur):
        cur.execute(sql)
        logger.info("leads, followup_conversations and attachments tables ensured.")
