"""
Recall Run Engine v1.0: Catalog Content
Static device and crisis content in wire format (camelCase).
Edit this file to change what the player can pick and what can go wrong.
Validated once by catalog.Catalog.from_raw; invalid entries are dropped.

Trigger conditions are expressions over: month, budget, doom, tagCount,
activeTags. Example: "month >= 12 and 'cloud_dependency' in activeTags".
"""


# ══════════════════════════════════════════════════
# DEVICES
# ══════════════════════════════════════════════════

DEVICES = [
    {
        "id": "omni-juice",
        "name": "Omni-Juice Pro",
        "description": "A Wi-Fi juicer that needs a cloud login to squeeze an orange.",
        "archetype": "consumer",
        "difficulty": "easy",
        "initialTags": ["cloud_dependency"],
        "initialBudget": 120_000,
        "monthlyMaintenanceCost": 1500,
        "eolMonth": 48,
    },
    {
        "id": "frostbyte-fridge",
        "name": "Frostbyte Smart Fridge",
        "description": "Tracks your groceries. Also tracks your neighbours' Wi-Fi.",
        "archetype": "appliance",
        "difficulty": "medium",
        "initialTags": ["default_password", "cheap_wifi"],
        "initialBudget": 100_000,
        "monthlyMaintenanceCost": 2000,
        "eolMonth": 42,
    },
    {
        "id": "glucolink-pump",
        "name": "GlucoLink Insulin Pump",
        "description": "Bluetooth dosing with a firmware nobody has fully read.",
        "archetype": "medical",
        "difficulty": "hard",
        "initialTags": ["untested_hardware"],
        "initialBudget": 150_000,
        "monthlyMaintenanceCost": 4000,
        "eolMonth": 54,
    },
    {
        "id": "badgemaster",
        "name": "BadgeMaster Enterprise",
        "description": "Door badges for the office, managed by a 2009 Java applet.",
        "archetype": "corporate",
        "difficulty": "medium",
        "initialTags": ["tech_debt"],
        "initialBudget": 110_000,
        "monthlyMaintenanceCost": 2500,
        "eolMonth": 48,
    },
    {
        "id": "rustbelt-plc",
        "name": "RustBelt PLC Gateway",
        "description": "Connects forty-year-old factory controllers to the internet. What could go wrong?",
        "archetype": "industrial",
        "difficulty": "hard",
        "initialTags": ["no_encryption", "tech_debt"],
        "initialBudget": 140_000,
        "monthlyMaintenanceCost": 3500,
        "eolMonth": 60,
    },
    {
        "id": "nannycam",
        "name": "NannyCam Cloud",
        "description": "A baby monitor with a public stream and admin/admin credentials.",
        "archetype": "consumer",
        "difficulty": "extreme",
        "initialTags": ["default_password", "no_encryption", "cloud_dependency"],
        "initialBudget": 80_000,
        "monthlyMaintenanceCost": 1800,
        "eolMonth": 36,
    },
    {
        "id": "latchkey-lock",
        "name": "LatchKey Smart Lock",
        "description": "Unlocks with your phone. Its flash chip was the cheapest on the market.",
        "archetype": "consumer",
        "difficulty": "medium",
        "initialTags": ["bad_flash"],
        "initialBudget": 100_000,
        "monthlyMaintenanceCost": 2200,
        "eolMonth": 48,
    },
]


# ══════════════════════════════════════════════════
# EVENTS
# ══════════════════════════════════════════════════

EVENTS = [
    {
        "id": "cra-deadline",
        "title": "Cyber Resilience Act Deadline",
        "description": "The EU wants a conformity assessment, an SBOM and a vulnerability process. By Friday.",
        "category": "regulatory",
        "triggerCondition": "month >= 12",
        "blockedByTags": ["cra_ready"],
        "targetModule": "security",
        "choices": [
            {"id": "full-compliance", "text": "Fund a full conformity programme",
             "cost": 40_000, "doomImpact": 0, "addTags": ["cra_ready"],
             "removeTags": ["cra_noncompliant"], "riskLevel": "low"},
            {"id": "self-certify", "text": "Self-certify and hope nobody checks",
             "cost": 5_000, "doomImpact": 10, "addTags": ["regulatory_debt"],
             "riskLevel": "medium"},
            {"id": "ignore", "text": "Brexit the product out of the EU",
             "cost": 0, "doomImpact": 20, "addTags": ["cra_noncompliant"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "mirai-botnet",
        "title": "Botnet Recruitment Drive",
        "description": "Your devices are DDoSing a Minecraft server. Default credentials did this.",
        "category": "cyberattack",
        "requiredTags": ["default_password"],
        "blockedByTags": ["password_rotation"],
        "visualEffect": "glitch",
        "targetModule": "network",
        "choices": [
            {"id": "emergency-patch", "text": "Force unique passwords over OTA",
             "cost": 25_000, "doomImpact": 5, "addTags": ["password_rotation"],
             "removeTags": ["default_password"], "riskLevel": "low"},
            {"id": "blame-users", "text": "Tweet that users should change passwords",
             "cost": 0, "doomImpact": 15, "addTags": ["pr_disaster"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "ransomware-fleet",
        "title": "Fleet Ransomware",
        "description": "Every device now shows a skull and a Monero address.",
        "category": "cyberattack",
        "triggerCondition": "doom > 30",
        "blockedByTags": ["encrypted_updates"],
        "visualEffect": "shake",
        "targetModule": "storage",
        "choices": [
            {"id": "pay-ransom", "text": "Pay the ransom",
             "cost": 50_000, "doomImpact": 10, "riskLevel": "high"},
            {"id": "restore-backups", "text": "Restore from backups",
             "cost": 20_000, "doomImpact": 5, "addTags": ["encrypted_updates"],
             "riskLevel": "medium"},
            {"id": "rebuild", "text": "Rebuild the update pipeline from scratch",
             "cost": 80_000, "doomImpact": 0, "addTags": ["encrypted_updates"],
             "removeTags": ["tech_debt"], "riskLevel": "low"},
        ],
    },
    {
        "id": "cloud-shutdown",
        "title": "Cloud Provider Sunset",
        "description": "The backend vendor is pivoting to AI. Your servers go dark in 30 days.",
        "category": "operational",
        "requiredTags": ["cloud_dependency"],
        "targetModule": "cloud",
        "choices": [
            {"id": "migrate", "text": "Migrate to a new provider",
             "cost": 60_000, "doomImpact": 0, "removeTags": ["cloud_dependency"],
             "riskLevel": "low"},
            {"id": "local-mode", "text": "Ship a rushed offline mode",
             "cost": 30_000, "doomImpact": 5, "addTags": ["tech_debt"],
             "removeTags": ["cloud_dependency"], "riskLevel": "medium"},
            {"id": "brick", "text": "Let the devices brick",
             "cost": 0, "doomImpact": 25, "addTags": ["pr_disaster"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "chip-shortage",
        "title": "Silicon Shortage",
        "description": "Your MCU has a 52-week lead time. Brokers want 10x list price.",
        "category": "supply_chain",
        "triggerCondition": "month >= 6",
        "repeatable": True,
        "targetModule": "cpu",
        "choices": [
            {"id": "broker-market", "text": "Buy from the grey market",
             "cost": 30_000, "doomImpact": 5, "addTags": ["supply_risk"],
             "riskLevel": "medium"},
            {"id": "redesign", "text": "Redesign around an available part",
             "cost": 45_000, "doomImpact": 0, "riskLevel": "low"},
            {"id": "pause-production", "text": "Pause production",
             "cost": 0, "doomImpact": 10, "riskLevel": "high"},
        ],
    },
    {
        "id": "flash-wearout",
        "title": "Flash Memory Wear-Out",
        "description": "Logging every second to cheap eMMC was a choice. Devices are dying.",
        "category": "operational",
        "requiredTags": ["bad_flash"],
        "targetModule": "storage",
        "choices": [
            {"id": "ota-fix", "text": "OTA update to stop log spam",
             "cost": 15_000, "doomImpact": 5, "removeTags": ["bad_flash"],
             "riskLevel": "medium"},
            {"id": "recall-units", "text": "Recall and replace affected units",
             "cost": 70_000, "doomImpact": 0, "removeTags": ["bad_flash"],
             "riskLevel": "low"},
            {"id": "ignore", "text": "Call it planned obsolescence",
             "cost": 0, "doomImpact": 20, "addTags": ["data_loss"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "gdpr-complaint",
        "title": "GDPR Complaint",
        "description": "A privacy NGO found your telemetry endpoint. It is not anonymous.",
        "category": "privacy",
        "triggerCondition": "'cloud_dependency' in activeTags or 'no_encryption' in activeTags",
        "choices": [
            {"id": "hire-dpo", "text": "Hire a data protection officer",
             "cost": 20_000, "doomImpact": 0, "riskLevel": "low"},
            {"id": "lawyer-up", "text": "Lawyer up",
             "cost": 35_000, "doomImpact": 5, "riskLevel": "medium"},
            {"id": "ignore", "text": "Ignore the letter",
             "cost": 0, "doomImpact": 15, "addTags": ["regulatory_debt"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "clone-market",
        "title": "Clones on the Marketplace",
        "description": "A copy of your device sells for a third of the price. It even runs your firmware.",
        "category": "ipr",
        "triggerCondition": "month >= 18",
        "choices": [
            {"id": "lawsuit", "text": "Sue the cloners",
             "cost": 40_000, "doomImpact": 5, "riskLevel": "medium"},
            {"id": "lower-price", "text": "Drop your price",
             "cost": 0, "doomImpact": 10, "riskLevel": "medium"},
            {"id": "embrace", "text": "Pretend the clones are official",
             "cost": 0, "doomImpact": 15, "addTags": ["cloned"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "influencer-teardown",
        "title": "Influencer Teardown",
        "description": "A tech YouTuber opened your device on camera. The glue gun made an appearance.",
        "category": "reputational",
        "baseProb": 0.2,
        "choices": [
            {"id": "pr-campaign", "text": "Launch a quality campaign",
             "cost": 25_000, "doomImpact": 5, "riskLevel": "low"},
            {"id": "apology", "text": "Post a heartfelt apology",
             "cost": 5_000, "doomImpact": 10, "riskLevel": "medium"},
            {"id": "ignore", "text": "Say nothing",
             "cost": 0, "doomImpact": 15, "addTags": ["pr_disaster"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "fda-audit",
        "title": "FDA Cybersecurity Audit",
        "description": "The regulator wants your threat model. You have a whiteboard photo.",
        "category": "regulatory",
        "archetypes": ["medical"],
        "choices": [
            {"id": "full-audit", "text": "Commission a full audit",
             "cost": 60_000, "doomImpact": 0, "riskLevel": "low"},
            {"id": "delay", "text": "Request an extension",
             "cost": 10_000, "doomImpact": 15, "addTags": ["regulatory_debt"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "scada-intrusion",
        "title": "SCADA Intrusion",
        "description": "Someone is toggling valves at a brewery through your gateway.",
        "category": "cyberattack",
        "archetypes": ["industrial"],
        "blockedByTags": ["network_segmentation"],
        "visualEffect": "shake",
        "targetModule": "control",
        "choices": [
            {"id": "segment-network", "text": "Segment customer networks",
             "cost": 45_000, "doomImpact": 0, "addTags": ["network_segmentation"],
             "riskLevel": "low"},
            {"id": "air-gap", "text": "Tell customers to unplug the gateway",
             "cost": 20_000, "doomImpact": 10, "riskLevel": "medium"},
        ],
    },
    {
        "id": "eol-component",
        "title": "Component End-of-Life",
        "description": "The radio module vendor discontinued your part. Last-time-buy closes soon.",
        "category": "supply_chain",
        "triggerCondition": "month >= 30",
        "targetModule": "network",
        "choices": [
            {"id": "last-time-buy", "text": "Buy ten years of stock",
             "cost": 35_000, "doomImpact": 0, "riskLevel": "low"},
            {"id": "substitute", "text": "Swap in an uncertified substitute",
             "cost": 15_000, "doomImpact": 10, "addTags": ["untested_hardware"],
             "riskLevel": "high"},
        ],
    },
    {
        "id": "debug-port",
        "title": "Open Debug Port",
        "description": "A researcher dumped your firmware over JTAG in eleven minutes.",
        "category": "cyberattack",
        "triggerCondition": "tagCount >= 3",
        "blockedByTags": ["secure_boot"],
        "targetModule": "cpu",
        "choices": [
            {"id": "disable-jtag", "text": "Fuse JTAG and enable secure boot",
             "cost": 10_000, "doomImpact": 0, "addTags": ["secure_boot"],
             "riskLevel": "low"},
            {"id": "ignore", "text": "It's a feature for power users",
             "cost": 0, "doomImpact": 15, "riskLevel": "high"},
        ],
    },
    {
        "id": "marketing-pivot",
        "title": "Marketing Wants AI",
        "description": "The board read an article. The device must now be 'AI-powered'.",
        "category": "reputational",
        "baseProb": 0.15,
        "repeatable": True,
        "choices": [
            {"id": "ai-rebrand", "text": "Put 'AI' on the box",
             "cost": 10_000, "doomImpact": 10, "addTags": ["fake_ai"],
             "riskLevel": "medium"},
            {"id": "stay-course", "text": "Push back on the board",
             "cost": 0, "doomImpact": 0, "riskLevel": "low"},
        ],
    },
]
