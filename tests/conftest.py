from __future__ import annotations

from typing import Dict

import pytest

SOURCE_URLS: Dict[str, str] = {
    "escanos": "https://sheets.example/escanos.csv",
    "votos": "https://sheets.example/votos.csv",
    "estado": "https://sheets.example/estado.csv",
    "municipios": "https://sheets.example/municipios.csv",
    "participacion": "https://sheets.example/participacion.csv",
}

SEATS_CSV = """Partido,2023,2025,lado,color
PP,28,30,2,2563eb
PSOE,23,18,1,#dc2626
VOX,7,12,2,16a34a
CHA,3,6,1,059669
PAR,3,0,2,eab308
,5,5,1,000000
"""

VOTES_CSV = """siglas,porcentaje,color
PSOE,"25,4%",dc2626
PP,"38,1%",#2563eb
VOX,"12,0",
"""

STATUS_CSV = """escrutado,dia,hora
"87,5%",15/06/2026,20:30
"""

MUNICIPALITIES_CSV = """municipio_nombre,PROVINCIA,siglas_1,porcentaje_1,siglas_2,porcentaje_2,siglas_3,porcentaje_3
Zaragoza,Zaragoza,PP,"36,2",PSOE,"27,9",VOX,"14,1"
Alcañiz,Teruel,PSOE,"33,0",PP,"31,5",VOX,"15,2"
Sin provincia,,PP,"40,0",,,,
"""

TURNOUT_CSV = """territorio,hora,participacion,mesas,censo
Aragón,20:00,"64,1","2.100","1.010.000"
Zaragoza,20:00,"63,8","1.300","740.000"
Huesca,20:00,"62,3","1.200","150.000"
Teruel,20:00,"68,9",500,"110.000"
"""


@pytest.fixture
def source_urls() -> Dict[str, str]:
    return dict(SOURCE_URLS)


@pytest.fixture
def sheet_bodies() -> Dict[str, str]:
    return {
        "escanos": SEATS_CSV,
        "votos": VOTES_CSV,
        "estado": STATUS_CSV,
        "municipios": MUNICIPALITIES_CSV,
        "participacion": TURNOUT_CSV,
    }


@pytest.fixture
def body_for_url(source_urls, sheet_bodies) -> Dict[str, str]:
    return {source_urls[name]: body for name, body in sheet_bodies.items()}
