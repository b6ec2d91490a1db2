"""Demo report used by the entry view's "Load sample data" action."""

from __future__ import annotations

from datetime import date

from zona9.entry import ReportDraft
from zona9.models import ActivityItem, ActivityNote, FuelRecord, SiteRecord, site_color


SAMPLE_SITES = [
    # name, issued, received, stock, pob
    ("PHSS", 11722400, 0, 1007404784800, 26),
    ("SANGASANGA", 2860000, 354373924, 114837688477, 74),
    ("SANGATTA", 0, 0, 60854846738, 21),
    ("TANJUNG", 0, 0, 36922193833, 40),
    ("ZONA 9", 0, 0, 0, 4),
]

SAMPLE_FUEL = [
    # name, biosolar, pertalite, pertadex
    ("PHSS", 12000, 15, 450),
    ("SANGASANGA", 8000, 10, 320),
    ("SANGATTA", 3000, 5, 150),
    ("TANJUNG", 2221, 5, 85),
]

SAMPLE_ACTIVITIES = {
    "PHSS": [
        ("Warehouse", "Monitoring penerimaan material rutin dan pengecekan stok kritikal."),
    ],
    "SANGASANGA": [
        ("Warehouse", "Pengeluaran handak untuk kebutuhan Perforasi ANG-1179"),
        ("Angber", "Support Pindahkan posisi xmastree di wows"),
        ("Fuel", "Pengisian Air Tandon sebanyak 1200 liter di PPP"),
    ],
    "SANGATTA": [
        ("ANGBER", "Lanjut support pekerjaan di SBT-01 - Crane Petrolog"),
        ("Truck", "Crane Petrolog - Perjalanan ke Tanjung Batu"),
        ("Warehouse", "Operasional Rutin"),
    ],
    "TANJUNG": [
        ("Crane", "Support penebangan pohon di RDP Samping SMP"),
        ("Picker", "Mobilisasi exca ke km.89 (standby disana)"),
        ("Foco Crane", "Mobilisasi Material Pipe Yard ke GWS, Kemudian Reposisi Material di Pipe Yard"),
        ("Warehouse", "Lanjut penataan/pengecekan/dokumentasi kembali material FUPP Peti 11"),
    ],
}


def sample_draft(day: date) -> ReportDraft:
    sites = tuple(
        SiteRecord(name, day, float(issued), float(received), float(stock), int(pob), site_color(name))
        for name, issued, received, stock, pob in SAMPLE_SITES
    )
    fuel = tuple(FuelRecord(name, day, float(b), float(l), float(d)) for name, b, l, d in SAMPLE_FUEL)
    notes = tuple(
        ActivityNote(site, day, tuple(ActivityItem(c, d) for c, d in items))
        for site, items in SAMPLE_ACTIVITIES.items()
    )
    return ReportDraft(day=day, sites=sites, fuel=fuel, notes=notes)
