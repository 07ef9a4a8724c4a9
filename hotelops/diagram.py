"""
ER diagram generator for the hotel operations schema.

Entities and relationships are read from the installed models, so the
diagram follows the schema without being edited by hand.
"""

import matplotlib

matplotlib.use('Agg')

import matplotlib.patches as patches  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
from django.apps import apps  # noqa: E402
from matplotlib.patches import FancyBboxPatch  # noqa: E402

ENTITY_COLOR = '#E8F4FD'
PRIMARY_KEY_COLOR = '#FFE4B5'
FOREIGN_KEY_COLOR = '#FFB6C1'

ROW_HEIGHT = 0.3
BOX_WIDTH = 2.6


def collect_entities(app_label='hotelops'):
    """
    Return ``(entities, relationships)`` for the models of ``app_label``.

    ``entities`` maps model name to a list of ``(column, key)`` pairs where
    key is 'PK', 'FK' or ''. ``relationships`` holds
    ``(parent, child, label)`` tuples, one per foreign key or M2M field.
    """
    entities = {}
    relationships = []

    for model in apps.get_app_config(app_label).get_models():
        columns = []
        for field in model._meta.concrete_fields:
            if field.primary_key:
                columns.append((field.column, 'PK'))
            elif field.is_relation:
                columns.append((field.column, 'FK'))
                relationships.append((field.related_model.__name__, model.__name__, '1:N'))
            else:
                columns.append((field.column, ''))
        for field in model._meta.local_many_to_many:
            relationships.append((field.related_model.__name__, model.__name__, 'N:M'))
        entities[model.__name__] = columns

    return entities, relationships


def layout_entities(names, columns=4):
    """Place entity boxes on a grid, row by row from the top."""
    rows = int(np.ceil(len(names) / columns)) or 1
    xs = np.linspace(2, 4 * columns - 2, columns)
    ys = np.linspace(5 * rows, 3, rows) if rows > 1 else np.array([5.0])
    return {
        name: (float(xs[i % columns]), float(ys[i // columns]))
        for i, name in enumerate(names)
    }


def _box_height(attributes):
    return len(attributes) * ROW_HEIGHT + 0.5


def render_er_diagram(output_path, app_label='hotelops', title='Hotel Operations - ER Diagram'):
    entities, relationships = collect_entities(app_label)
    positions = layout_entities(list(entities))

    width = max(x for x, _ in positions.values()) + 2
    height = max(y + _box_height(entities[name]) / 2 for name, (_, y) in positions.items()) + 1.5

    fig, ax = plt.subplots(1, 1, figsize=(width, height))
    ax.set_xlim(0, width)
    ax.set_ylim(0, height)
    ax.axis('off')

    for name, (x, y) in positions.items():
        attributes = entities[name]
        box_height = _box_height(attributes)

        ax.add_patch(FancyBboxPatch(
            (x - BOX_WIDTH / 2, y - box_height / 2),
            BOX_WIDTH, box_height,
            boxstyle="round,pad=0.05",
            facecolor=ENTITY_COLOR,
            edgecolor='black',
            linewidth=1.5,
        ))
        ax.text(x, y + box_height / 2 - 0.2, name, ha='center', va='center', fontsize=11, fontweight='bold')

        line_y = y + box_height / 2 - 0.4
        ax.plot([x - BOX_WIDTH / 2 + 0.1, x + BOX_WIDTH / 2 - 0.1], [line_y, line_y], 'k-', linewidth=1)

        for i, (column, key) in enumerate(attributes):
            attr_y = y + box_height / 2 - 0.7 - (i * ROW_HEIGHT)
            color = {'PK': PRIMARY_KEY_COLOR, 'FK': FOREIGN_KEY_COLOR}.get(key, 'white')
            ax.add_patch(patches.Rectangle(
                (x - BOX_WIDTH / 2 + 0.05, attr_y - 0.1),
                BOX_WIDTH - 0.1, 0.2,
                facecolor=color,
                edgecolor='gray',
                linewidth=0.5,
            ))
            label = f"{column} ({key})" if key else column
            ax.text(x - BOX_WIDTH / 2 + 0.1, attr_y, label, ha='left', va='center', fontsize=8)

    for parent, child, label in relationships:
        if parent not in positions or child not in positions:
            continue
        start = np.array(positions[parent])
        end = np.array(positions[child])
        ax.annotate('', xy=end, xytext=start, arrowprops=dict(arrowstyle='->', lw=1.2, color='blue', alpha=0.6))
        mid_x, mid_y = (start + end) / 2
        ax.text(mid_x, mid_y + 0.2, label, ha='center', va='center', fontsize=8, fontweight='bold',
                bbox=dict(boxstyle="round,pad=0.2", facecolor='yellow', alpha=0.7))

    ax.text(width / 2, height - 0.5, title, ha='center', va='center', fontsize=16, fontweight='bold')
    ax.legend(handles=[
        patches.Patch(color=PRIMARY_KEY_COLOR, label='Primary Key (PK)'),
        patches.Patch(color=FOREIGN_KEY_COLOR, label='Foreign Key (FK)'),
        patches.Patch(color=ENTITY_COLOR, label='Entity'),
    ], loc='upper right')

    fig.savefig(output_path, dpi=150, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    return entities, relationships
