from github_auth_provider.cli import main

if __name__ == "__main__":
    main()
