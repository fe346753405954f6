#!/usr/bin/env python3
"""
Travedia Database Seeder
Seeds sample tour packages so the payment flow can be tried locally
"""

import asyncio
from datetime import datetime, timedelta, timezone

from motor.motor_asyncio import AsyncIOMotorClient

from .config import Settings

SAMPLE_PACKAGES = [
    {
        "nama": "Bromo Sunrise 2D1N",
        "deskripsi": "Jeep tour to Penanjakan for sunrise over Mount Bromo",
        "include": ["Jeep", "Hotel", "Breakfast", "Guide"],
        "exclude": ["Flights", "Personal expenses"],
        "harga": 500000,
        "status": "available",
        "durasi": "2 hari 1 malam",
    },
    {
        "nama": "Bali Island Hopping",
        "deskripsi": "Nusa Penida and Nusa Lembongan by speedboat",
        "include": ["Speedboat", "Lunch", "Snorkeling gear"],
        "exclude": ["Hotel"],
        "harga": 1250000,
        "status": "available",
        "durasi": "1 hari",
    },
    {
        "nama": "Raja Ampat Liveaboard",
        "deskripsi": "Five-day dive trip around Misool",
        "include": ["Cabin", "Meals", "Dives"],
        "exclude": ["Marine park fee"],
        "harga": 18500000,
        "status": "sold out",
        "durasi": "5 hari 4 malam",
    },
]


def _schedule(start_in_days: int, length_days: int):
    start = datetime.now(timezone.utc) + timedelta(days=start_in_days)
    return {
        "tanggalAwal": start,
        "tanggalAkhir": start + timedelta(days=length_days),
        "status": "tersedia",
    }


async def seed_database(settings: Settings = None):
    """Seed the database with sample packages"""
    settings = settings or Settings()
    client = AsyncIOMotorClient(settings.mongo_url)
    db = client[settings.db_name]

    print("🌱 Seeding Travedia database...")

    await db.packages.delete_many({})
    print("   Cleared packages")

    for offset, package in enumerate(SAMPLE_PACKAGES):
        document = dict(package)
        document["jadwal"] = [_schedule(14 + offset * 7, 2), _schedule(28 + offset * 7, 2)]
        result = await db.packages.insert_one(document)
        print(f"   ✅ {package['nama']} ({result.inserted_id}) - Rp {package['harga']:,}")

    client.close()
    print("🎉 Seeding complete")


def main():
    asyncio.run(seed_database())


if __name__ == "__main__":
    main()
