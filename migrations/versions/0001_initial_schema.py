"""Initial schema: shops, users, SAV catalog, cases, parts and notifications.

Revision ID: 0001
Revises:     (none)
Create Date: 2025-03-03
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op


def upgrade() -> None:
    # ---------------------------------------------------------------------- #
    # Enable pgcrypto for gen_random_uuid()                                   #
    # ---------------------------------------------------------------------- #
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ------------------------------------------------------------------ #
    # shops  (tenants)                                                     #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE shops (
            id                       UUID         NOT NULL DEFAULT gen_random_uuid(),
            name                     VARCHAR(200) NOT NULL,
            subscription_tier        VARCHAR(20)  NOT NULL DEFAULT 'free',
            disabled_features        JSONB,
            forced_features          JSONB,
            max_active_cases         INT,
            sav_delay_alerts_enabled BOOLEAN      NOT NULL DEFAULT FALSE,
            review_request_enabled   BOOLEAN      NOT NULL DEFAULT FALSE,
            created_at               TIMESTAMP    NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_shops PRIMARY KEY (id),
            CONSTRAINT chk_shops_tier CHECK (
                subscription_tier IN ('free', 'premium', 'enterprise')
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # users                                                                #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE users (
            id            UUID         NOT NULL DEFAULT gen_random_uuid(),
            auth_user_id  VARCHAR(200) NOT NULL,
            shop_id       UUID         NOT NULL,
            full_name     VARCHAR(200) NOT NULL,
            email         VARCHAR(200),
            role          VARCHAR(20)  NOT NULL,
            is_active     BOOLEAN      NOT NULL DEFAULT TRUE,
            created_at    TIMESTAMP    NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_users PRIMARY KEY (id),
            CONSTRAINT uq_users_auth_user_id UNIQUE (auth_user_id),
            CONSTRAINT fk_users_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE,
            CONSTRAINT chk_users_role CHECK (
                role IN ('SUPER_ADMIN', 'SHOP_ADMIN', 'TECHNICIAN')
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # customers                                                            #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE customers (
            id          UUID         NOT NULL DEFAULT gen_random_uuid(),
            shop_id     UUID         NOT NULL,
            first_name  VARCHAR(100) NOT NULL,
            last_name   VARCHAR(100) NOT NULL,
            email       VARCHAR(200),
            phone       VARCHAR(50),
            created_at  TIMESTAMP    NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_customers PRIMARY KEY (id),
            CONSTRAINT fk_customers_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE
        )
    """)

    # ------------------------------------------------------------------ #
    # parts  (catalog)                                                     #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE parts (
            id              UUID          NOT NULL DEFAULT gen_random_uuid(),
            shop_id         UUID          NOT NULL,
            name            VARCHAR(200)  NOT NULL,
            reference       VARCHAR(100),
            purchase_price  NUMERIC(10,2) NOT NULL DEFAULT 0,
            selling_price   NUMERIC(10,2) NOT NULL DEFAULT 0,
            created_at      TIMESTAMP     NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_parts PRIMARY KEY (id),
            CONSTRAINT fk_parts_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE
        )
    """)

    # ------------------------------------------------------------------ #
    # shop_sav_types / shop_sav_statuses  (per-shop catalog)               #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE shop_sav_types (
            id                       UUID         NOT NULL DEFAULT gen_random_uuid(),
            shop_id                  UUID         NOT NULL,
            type_key                 VARCHAR(50)  NOT NULL,
            type_label               VARCHAR(100) NOT NULL,
            type_color               VARCHAR(20)  NOT NULL DEFAULT '#6b7280',
            display_order            INT          NOT NULL DEFAULT 0,
            is_active                BOOLEAN      NOT NULL DEFAULT TRUE,
            max_processing_days      INT          NOT NULL DEFAULT 7,
            alert_days               INT          NOT NULL DEFAULT 2,
            exclude_from_stats       BOOLEAN      NOT NULL DEFAULT FALSE,
            exclude_purchase_costs   BOOLEAN      NOT NULL DEFAULT FALSE,
            exclude_sales_revenue    BOOLEAN      NOT NULL DEFAULT FALSE,
            show_satisfaction_survey BOOLEAN      NOT NULL DEFAULT TRUE,
            updated_at               TIMESTAMP    NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_shop_sav_types PRIMARY KEY (id),
            CONSTRAINT uq_shop_sav_types_key UNIQUE (shop_id, type_key),
            CONSTRAINT fk_shop_sav_types_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE,
            CONSTRAINT chk_shop_sav_types_days CHECK (
                max_processing_days >= 0 AND alert_days >= 0
            )
        )
    """)

    op.execute("""
        CREATE TABLE shop_sav_statuses (
            id               UUID         NOT NULL DEFAULT gen_random_uuid(),
            shop_id          UUID         NOT NULL,
            status_key       VARCHAR(50)  NOT NULL,
            status_label     VARCHAR(100) NOT NULL,
            status_color     VARCHAR(20)  NOT NULL DEFAULT '#6b7280',
            display_order    INT          NOT NULL DEFAULT 0,
            is_active        BOOLEAN      NOT NULL DEFAULT TRUE,
            pause_timer      BOOLEAN      NOT NULL DEFAULT FALSE,
            is_final_status  BOOLEAN      NOT NULL DEFAULT FALSE,
            updated_at       TIMESTAMP    NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_shop_sav_statuses PRIMARY KEY (id),
            CONSTRAINT uq_shop_sav_statuses_key UNIQUE (shop_id, status_key),
            CONSTRAINT fk_shop_sav_statuses_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE
        )
    """)

    # ------------------------------------------------------------------ #
    # case_sequence  (per-shop yearly counter)                             #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE case_sequence (
            shop_id  UUID      NOT NULL,
            year     SMALLINT  NOT NULL,
            last_seq INT       NOT NULL DEFAULT 0,
            CONSTRAINT pk_case_sequence PRIMARY KEY (shop_id, year),
            CONSTRAINT fk_case_sequence_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE
        )
    """)

    # ------------------------------------------------------------------ #
    # sav_cases                                                            #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE sav_cases (
            id                  UUID          NOT NULL DEFAULT gen_random_uuid(),
            shop_id             UUID          NOT NULL,
            case_number         VARCHAR(30)   NOT NULL,
            sav_type            VARCHAR(50)   NOT NULL,
            status              VARCHAR(50)   NOT NULL DEFAULT 'pending',
            customer_id         UUID,
            device_brand        VARCHAR(100),
            device_model        VARCHAR(100),
            problem_description TEXT,
            repair_notes        TEXT,
            total_cost          NUMERIC(10,2) NOT NULL DEFAULT 0,
            taken_over          BOOLEAN       NOT NULL DEFAULT FALSE,
            partial_takeover    BOOLEAN       NOT NULL DEFAULT FALSE,
            takeover_amount     NUMERIC(10,2),
            total_time_minutes  INT,
            created_at          TIMESTAMP     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMP     NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_sav_cases PRIMARY KEY (id),
            CONSTRAINT uq_sav_cases_number UNIQUE (shop_id, case_number),
            CONSTRAINT fk_sav_cases_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE,
            CONSTRAINT fk_sav_cases_customer FOREIGN KEY (customer_id)
                REFERENCES customers (id) ON DELETE SET NULL,
            CONSTRAINT chk_sav_cases_takeover CHECK (
                NOT partial_takeover OR takeover_amount >= 0
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # sav_parts  (part lines of a case)                                    #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE sav_parts (
            id                UUID          NOT NULL DEFAULT gen_random_uuid(),
            sav_case_id       UUID          NOT NULL,
            part_id           UUID,
            quantity          INT           NOT NULL DEFAULT 1,
            purchase_price    NUMERIC(10,2) NOT NULL DEFAULT 0,
            unit_price        NUMERIC(10,2),
            custom_part_name  VARCHAR(200),
            CONSTRAINT pk_sav_parts PRIMARY KEY (id),
            CONSTRAINT fk_sav_parts_case FOREIGN KEY (sav_case_id)
                REFERENCES sav_cases (id) ON DELETE CASCADE,
            CONSTRAINT fk_sav_parts_part FOREIGN KEY (part_id)
                REFERENCES parts (id) ON DELETE SET NULL
        )
    """)

    # ------------------------------------------------------------------ #
    # sav_status_history                                                   #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE sav_status_history (
            id                  UUID        NOT NULL DEFAULT gen_random_uuid(),
            sav_case_id         UUID        NOT NULL,
            prev_status         VARCHAR(50),
            status              VARCHAR(50) NOT NULL,
            notes               TEXT,
            changed_by_user_id  UUID,
            created_at          TIMESTAMP   NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_sav_status_history PRIMARY KEY (id),
            CONSTRAINT fk_sav_status_history_case FOREIGN KEY (sav_case_id)
                REFERENCES sav_cases (id) ON DELETE CASCADE,
            CONSTRAINT fk_sav_status_history_user FOREIGN KEY (changed_by_user_id)
                REFERENCES users (id) ON DELETE SET NULL
        )
    """)

    # ------------------------------------------------------------------ #
    # sav_messages  (client / shop conversation on a case)                 #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE sav_messages (
            id            UUID        NOT NULL DEFAULT gen_random_uuid(),
            shop_id       UUID        NOT NULL,
            sav_case_id   UUID        NOT NULL,
            sender_type   VARCHAR(20) NOT NULL,
            body          TEXT        NOT NULL,
            read_by_shop  BOOLEAN     NOT NULL DEFAULT FALSE,
            created_at    TIMESTAMP   NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_sav_messages PRIMARY KEY (id),
            CONSTRAINT fk_sav_messages_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE,
            CONSTRAINT fk_sav_messages_case FOREIGN KEY (sav_case_id)
                REFERENCES sav_cases (id) ON DELETE CASCADE,
            CONSTRAINT chk_sav_messages_sender CHECK (sender_type IN ('client', 'shop'))
        )
    """)

    # ------------------------------------------------------------------ #
    # notifications                                                        #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE notifications (
            id           UUID         NOT NULL DEFAULT gen_random_uuid(),
            shop_id      UUID         NOT NULL,
            user_id      UUID,                  -- NULL = every user of the shop
            sav_case_id  UUID,
            part_id      UUID,
            type         VARCHAR(50)  NOT NULL,
            title        VARCHAR(200) NOT NULL,
            message      TEXT,
            is_read      BOOLEAN      NOT NULL DEFAULT FALSE,
            created_at   TIMESTAMP    NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_notifications PRIMARY KEY (id),
            CONSTRAINT fk_notifications_shop FOREIGN KEY (shop_id)
                REFERENCES shops (id) ON DELETE CASCADE,
            CONSTRAINT fk_notifications_user FOREIGN KEY (user_id)
                REFERENCES users (id) ON DELETE CASCADE,
            CONSTRAINT fk_notifications_case FOREIGN KEY (sav_case_id)
                REFERENCES sav_cases (id) ON DELETE SET NULL
        )
    """)

    # ------------------------------------------------------------------ #
    # sav_delay_alerts  (one row per case and alert tier)                  #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE sav_delay_alerts (
            id               UUID        NOT NULL DEFAULT gen_random_uuid(),
            sav_case_id      UUID        NOT NULL,
            alert_tier       VARCHAR(20) NOT NULL,
            notification_id  UUID,
            created_at       TIMESTAMP   NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_sav_delay_alerts PRIMARY KEY (id),
            CONSTRAINT uq_sav_delay_alerts_case_tier UNIQUE (sav_case_id, alert_tier),
            CONSTRAINT fk_sav_delay_alerts_case FOREIGN KEY (sav_case_id)
                REFERENCES sav_cases (id) ON DELETE CASCADE,
            CONSTRAINT fk_sav_delay_alerts_notification FOREIGN KEY (notification_id)
                REFERENCES notifications (id) ON DELETE SET NULL,
            CONSTRAINT chk_sav_delay_alerts_tier CHECK (
                alert_tier IN ('approaching', 'imminent', 'overdue')
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # Indexes                                                              #
    # ------------------------------------------------------------------ #

    # sav_cases: per-shop filtering
    op.execute("CREATE INDEX idx_sav_cases_shop_status ON sav_cases (shop_id, status)")
    op.execute("CREATE INDEX idx_sav_cases_shop_created ON sav_cases (shop_id, created_at)")
    op.execute("CREATE INDEX idx_sav_cases_customer ON sav_cases (customer_id)")

    op.execute("CREATE INDEX idx_sav_parts_case ON sav_parts (sav_case_id)")
    op.execute("CREATE INDEX idx_sav_status_history_case ON sav_status_history (sav_case_id)")

    # sav_messages: unread client messages per shop
    op.execute("""
        CREATE INDEX idx_sav_messages_unread
        ON sav_messages (shop_id, sav_case_id)
        WHERE sender_type = 'client' AND read_by_shop = FALSE
    """)

    # notifications: unread lookups
    op.execute("CREATE INDEX idx_notifications_shop_read ON notifications (shop_id, is_read)")

    op.execute("CREATE INDEX idx_customers_shop ON customers (shop_id)")
    op.execute("CREATE INDEX idx_parts_shop ON parts (shop_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS sav_delay_alerts CASCADE")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS sav_messages CASCADE")
    op.execute("DROP TABLE IF EXISTS sav_status_history CASCADE")
    op.execute("DROP TABLE IF EXISTS sav_parts CASCADE")
    op.execute("DROP TABLE IF EXISTS sav_cases CASCADE")
    op.execute("DROP TABLE IF EXISTS case_sequence CASCADE")
    op.execute("DROP TABLE IF EXISTS shop_sav_statuses CASCADE")
    op.execute("DROP TABLE IF EXISTS shop_sav_types CASCADE")
    op.execute("DROP TABLE IF EXISTS parts CASCADE")
    op.execute("DROP TABLE IF EXISTS customers CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
    op.execute("DROP TABLE IF EXISTS shops CASCADE")
