from nostr_tx_broadcast.bridge.service import main


if __name__ == "__main__":
    main()
