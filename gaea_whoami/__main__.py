from gaea_whoami.server import main

if __name__ == "__main__":
    main()
