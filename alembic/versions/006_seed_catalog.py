"""006: seed categories, instruments and opening prices

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        INSERT INTO categories (id, name) VALUES
            ('1', 'Cuerda'),
            ('2', 'Viento'),
            ('3', 'Percusion'),
            ('4', 'Teclado'),
            ('5', 'Electronico')
        ON CONFLICT (id) DO NOTHING;
    """)
    op.execute("""
        INSERT INTO instruments (id, name, brand, stock, category_id, description) VALUES
            ('1001', 'Guitarra Criolla Clasica Estudio', 'Gracia', 12, '1',
             'Tapa de pino, aros y fondo de cedro'),
            ('1002', 'Bajo Electrico Jazz Bass 4 Cuerdas', 'Fender', 4, '1',
             'Cuerpo de aliso, diapason de palo de rosa'),
            ('1003', 'Saxo Alto Laqueado', 'Yamaha', 3, '2',
             'Llave de fa sostenido agudo, estuche incluido'),
            ('1004', 'Bateria Acustica 5 Cuerpos con Platillos', 'Pearl', 2, '3',
             'Bombo 22, tom 10 y 12, tom de piso 16, redoblante 14'),
            ('1005', 'Teclado Organo Electronico 61 Teclas Sensitivas', 'Casio', 8, '4',
             'Con atril y fuente de alimentacion'),
            ('1006', 'Controlador MIDI 25 Teclas con Pads', 'Akai', 15, '5',
             'USB, 8 pads retroiluminados')
        ON CONFLICT (id) DO NOTHING;
    """)
    op.execute("""
        INSERT INTO price_history (instrument_id, price_cents)
        SELECT v.instrument_id, v.price_cents
        FROM (VALUES
            ('1001', 8500000),
            ('1002', 129900000),
            ('1003', 98000000),
            ('1004', 75000000),
            ('1005', 32000000),
            ('1006', 21000000)
        ) AS v (instrument_id, price_cents)
        WHERE NOT EXISTS (
            SELECT 1 FROM price_history p WHERE p.instrument_id = v.instrument_id
        );
    """)


def downgrade() -> None:
    op.execute(
        "DELETE FROM price_history WHERE instrument_id IN "
        "('1001', '1002', '1003', '1004', '1005', '1006');"
    )
    op.execute("DELETE FROM instruments WHERE id IN ('1001', '1002', '1003', '1004', '1005', '1006');")
    op.execute("DELETE FROM categories WHERE id IN ('1', '2', '3', '4', '5');")
