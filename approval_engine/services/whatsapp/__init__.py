"""WhatsApp channel: client, configuration, action tokens and webhook."""
